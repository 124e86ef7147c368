"""Share persistence behind one interface.

Two adapters exist. ``DatabaseShareStore`` keeps metadata and content in
separate relational rows and detects concurrent writers with a compare-and-swap
on ``view_count``. ``BlobShareStore`` keeps one JSON document per share and
detects them with the document etag. Callers see the same snapshot type and the
same contract either way: ``record_view`` returns ``None`` when it lost a race.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError

from vanish.core.unit_of_work import UnitOfWork
from vanish.domain.policy import as_utc, utcnow
from vanish.exceptions.exceptions import PreconditionFailedError, StorageError
from vanish.infrastructure.storage.base import StorageBackend
from vanish.models.share import Share, ShareContent


@dataclass(frozen=True)
class NewShare:
    code: str
    type: str
    content: str
    expires_at: datetime
    password_hash: str | None = None
    burn_after_reading: bool = False
    original_name: str | None = None
    mime_type: str | None = None
    size: int | None = None
    language: str | None = None


@dataclass(frozen=True)
class ShareSnapshot:
    code: str
    type: str
    content: str
    expires_at: datetime
    password_hash: str | None
    burn_after_reading: bool
    view_count: int
    burned: bool
    created_at: datetime
    original_name: str | None = None
    mime_type: str | None = None
    size: int | None = None
    language: str | None = None
    # Row id for the relational store, etag for the blob store.
    version: str = ""


class ShareStore(ABC):
    @abstractmethod
    async def fetch(self, code: str) -> ShareSnapshot | None:
        """Read the current share state; every call goes back to storage."""

    @abstractmethod
    async def record_view(
        self, snapshot: ShareSnapshot, *, password_hash: str | None = None
    ) -> ShareSnapshot | None:
        """Count one view, burning the share if it is burn-after-reading.

        Burning erases the stored content; the returned snapshot still carries
        it for the one reader that won. A ``password_hash`` replaces the stored
        hash in the same write. Returns None when the share changed since
        ``snapshot`` was read.
        """

    @abstractmethod
    async def create(self, share: NewShare) -> bool:
        """Insert atomically. False means the code is already taken."""

    @abstractmethod
    async def delete(self, code: str) -> None:
        """Remove the share and its content. Missing shares are ignored."""


class DatabaseShareStore(ShareStore):
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    @staticmethod
    def _snapshot(share: Share) -> ShareSnapshot:
        return ShareSnapshot(
            code=share.code,
            type=share.type,
            content=share.content.content if share.content else "",
            expires_at=as_utc(share.expires_at),
            password_hash=share.password_hash,
            burn_after_reading=share.burn_after_reading,
            view_count=share.view_count,
            burned=share.burned,
            created_at=as_utc(share.created_at),
            original_name=share.original_name,
            mime_type=share.mime_type,
            size=share.size,
            language=share.language,
            version=share.id,
        )

    async def fetch(self, code: str) -> ShareSnapshot | None:
        with self.uow.read_only():
            share = self.uow.share_repo.get_by_code(code)
            return self._snapshot(share) if share else None

    async def record_view(
        self, snapshot: ShareSnapshot, *, password_hash: str | None = None
    ) -> ShareSnapshot | None:
        burn = snapshot.burned or snapshot.burn_after_reading
        with self.uow:
            updated = self.uow.share_repo.record_view(
                snapshot.version,
                expected_view_count=snapshot.view_count,
                burn=burn,
                password_hash=password_hash,
            )
        if not updated:
            return None
        return replace(
            snapshot,
            view_count=snapshot.view_count + 1,
            burned=burn,
            password_hash=password_hash or snapshot.password_hash,
        )

    async def create(self, share: NewShare) -> bool:
        try:
            with self.uow:
                self.uow.share_repo.add_with_content(
                    Share(
                        id=uuid.uuid4().hex,
                        code=share.code,
                        type=share.type,
                        expires_at=share.expires_at,
                        password_hash=share.password_hash,
                        burn_after_reading=share.burn_after_reading,
                        view_count=0,
                        burned=False,
                        original_name=share.original_name,
                        mime_type=share.mime_type,
                        size=share.size,
                        language=share.language,
                    ),
                    ShareContent(id=uuid.uuid4().hex, content=share.content),
                )
        except IntegrityError:
            logging.info("[share_create] code collision code=%s", share.code)
            return False
        return True

    async def delete(self, code: str) -> None:
        with self.uow:
            self.uow.share_repo.delete_by_code(code)


def _isoformat(value: datetime) -> str:
    return as_utc(value).isoformat().replace("+00:00", "Z")


def _parse_datetime(value: Any) -> datetime:
    if not isinstance(value, str) or not value:
        raise StorageError("Invalid share metadata")
    try:
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError as exc:
        raise StorageError("Invalid share metadata") from exc


class BlobShareStore(ShareStore):
    """Shares stored as ``share-{code}.json`` documents, updated with etag preconditions."""

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    @staticmethod
    def document_key(code: str) -> str:
        return f"share-{code}.json"

    @staticmethod
    def _to_document(share: NewShare | ShareSnapshot, *, view_count: int, burned: bool, created_at: datetime) -> dict:
        document = {
            "type": share.type,
            "content": share.content,
            "expiresAt": _isoformat(share.expires_at),
            "password": share.password_hash,
            "burnAfterReading": share.burn_after_reading,
            "viewCount": view_count,
            "burned": burned,
            "createdAt": _isoformat(created_at),
        }
        optional = {
            "originalName": share.original_name,
            "mimeType": share.mime_type,
            "size": share.size,
            "language": share.language,
        }
        document.update({key: value for key, value in optional.items() if value is not None})
        return document

    @staticmethod
    def _from_document(code: str, data: dict, etag: str) -> ShareSnapshot:
        if not isinstance(data, dict) or not isinstance(data.get("type"), str):
            raise StorageError("Invalid share metadata")
        view_count = data.get("viewCount", 0)
        if not isinstance(view_count, int) or view_count < 0:
            raise StorageError("Invalid share metadata")
        return ShareSnapshot(
            code=code,
            type=data["type"],
            content=data.get("content") or "",
            expires_at=_parse_datetime(data.get("expiresAt")),
            password_hash=data.get("password") or None,
            burn_after_reading=bool(data.get("burnAfterReading")),
            view_count=view_count,
            burned=bool(data.get("burned")),
            created_at=_parse_datetime(data.get("createdAt") or data.get("expiresAt")),
            original_name=data.get("originalName"),
            mime_type=data.get("mimeType"),
            size=data.get("size"),
            language=data.get("language"),
            version=etag,
        )

    async def fetch(self, code: str) -> ShareSnapshot | None:
        document = await self.storage.get_document(self.document_key(code))
        if document is None:
            return None
        return self._from_document(code, document.data, document.etag)

    async def record_view(
        self, snapshot: ShareSnapshot, *, password_hash: str | None = None
    ) -> ShareSnapshot | None:
        burned = snapshot.burned or snapshot.burn_after_reading
        view_count = snapshot.view_count + 1
        stored = replace(snapshot, password_hash=password_hash or snapshot.password_hash)
        if burned:
            stored = replace(stored, content="")
        data = self._to_document(stored, view_count=view_count, burned=burned, created_at=snapshot.created_at)
        try:
            etag = await self.storage.put_document(self.document_key(snapshot.code), data, if_match=snapshot.version)
        except PreconditionFailedError:
            return None
        return replace(
            snapshot,
            view_count=view_count,
            burned=burned,
            password_hash=stored.password_hash,
            version=etag,
        )

    async def create(self, share: NewShare) -> bool:
        data = self._to_document(share, view_count=0, burned=False, created_at=utcnow())
        try:
            await self.storage.put_document(self.document_key(share.code), data, if_none_match=True)
        except PreconditionFailedError:
            logging.info("[share_create] code collision code=%s", share.code)
            return False
        return True

    async def delete(self, code: str) -> None:
        await self.storage.delete_object(self.document_key(code))
