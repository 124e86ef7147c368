from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import AsyncIterable, AsyncIterator

from sqlalchemy.exc import IntegrityError

from vanish.core.config import settings
from vanish.core.hashing import hash_password, normalize_password, verify_and_update
from vanish.core.optimistic import with_optimistic_retry
from vanish.core.unit_of_work import UnitOfWork
from vanish.domain.codes import (
    generate_download_token,
    generate_file_code,
    generate_storage_suffix,
    is_valid_file_code,
)
from vanish.domain.policy import (
    UNLIMITED_DOWNLOADS,
    as_utc,
    clamp_minutes,
    downloads_remaining,
    is_exhausted,
    is_expired,
    utcnow,
)
from vanish.domain.upload import DEFAULT_MIME_TYPE, UploadDraft, sanitize_filename
from vanish.exceptions.exceptions import (
    ConflictError,
    FeatureDisabledError,
    GoneError,
    GoneReason,
    NotFoundError,
    PasswordIncorrectError,
    PasswordRequiredError,
    StorageError,
    ValidationError,
)
from vanish.infrastructure.storage.base import StorageBackend
from vanish.models.download_token import DownloadToken
from vanish.models.file_record import FileRecord
from vanish.models.upload_session import UploadSession

FILE_NOT_FOUND = "File not found or expired"
TOKEN_NOT_FOUND = "Download link not found or already used"


@dataclass(frozen=True)
class FileSnapshot:
    id: str
    code: str
    storage_key: str
    original_name: str
    size: int
    mime_type: str
    expires_at: datetime
    max_downloads: int
    download_count: int
    password_hash: str | None

    @classmethod
    def from_record(cls, record: FileRecord) -> "FileSnapshot":
        return cls(
            id=record.id,
            code=record.code,
            storage_key=record.storage_key,
            original_name=record.original_name,
            size=record.size,
            mime_type=record.mime_type,
            expires_at=as_utc(record.expires_at),
            max_downloads=record.max_downloads,
            download_count=record.download_count,
            password_hash=record.password_hash,
        )


@dataclass(frozen=True)
class SessionSnapshot:
    code: str
    storage_key: str
    original_name: str
    size: int
    mime_type: str
    expires_at: datetime
    max_downloads: int
    password_hash: str | None
    session_expires_at: datetime

    @classmethod
    def from_record(cls, record: UploadSession) -> "SessionSnapshot":
        return cls(
            code=record.code,
            storage_key=record.storage_key,
            original_name=record.original_name,
            size=record.size,
            mime_type=record.mime_type,
            expires_at=as_utc(record.expires_at),
            max_downloads=record.max_downloads,
            password_hash=record.password_hash,
            session_expires_at=as_utc(record.session_expires_at),
        )


@dataclass(frozen=True)
class FileDescription:
    name: str
    size: int
    expires_at: datetime
    requires_password: bool
    downloads_remaining: int | str


@dataclass(frozen=True)
class DownloadGrant:
    token: str
    download_url: str
    expires_at: datetime
    delete_after: bool


@dataclass(frozen=True)
class FileDownload:
    name: str
    mime_type: str
    size: int
    chunks: AsyncIterator[bytes]


@dataclass(frozen=True)
class UploadInitResult:
    code: str
    upload_url: str
    expires_at: datetime


@dataclass(frozen=True)
class UploadAppendResult:
    code: str
    received: int


@dataclass(frozen=True)
class UploadCompleteResult:
    code: str
    name: str
    size: int
    expires_at: datetime
    max_downloads: int


class DeadDropService:
    """One-time file transfer: upload sessions, download grants and token redemption."""

    def __init__(
        self,
        uow: UnitOfWork,
        storage: StorageBackend | None,
        *,
        enabled: bool | None = None,
        base_url: str | None = None,
        retry_attempts: int | None = None,
        code_attempts: int | None = None,
        chunk_size: int | None = None,
    ):
        # Unset options follow the current settings, read per instance.
        self.uow = uow
        self.storage = storage
        self.enabled = settings.DEAD_DROP_ENABLED if enabled is None else enabled
        self.base_url = settings.BASE_URL if base_url is None else base_url
        self.retry_attempts = settings.OPTIMISTIC_RETRY_ATTEMPTS if retry_attempts is None else retry_attempts
        self.code_attempts = settings.CODE_RESERVATION_ATTEMPTS if code_attempts is None else code_attempts
        self.chunk_size = settings.UPLOAD_CHUNK_SIZE_BYTES if chunk_size is None else chunk_size

    def _require_storage(self, disabled_message: str) -> StorageBackend:
        if not self.enabled:
            raise FeatureDisabledError(disabled_message)
        if self.storage is None:
            raise StorageError("Storage not configured")
        return self.storage

    @staticmethod
    def _validate_code(code: str | None) -> str:
        if not is_valid_file_code(code):
            raise ValidationError("Invalid code format")
        return code

    def _load_file(self, code: str) -> FileSnapshot | None:
        with self.uow.read_only():
            record = self.uow.file_repo.get_by_code(code)
            return FileSnapshot.from_record(record) if record else None

    def _load_session(self, code: str) -> SessionSnapshot | None:
        with self.uow.read_only():
            record = self.uow.upload_session_repo.get(code)
            return SessionSnapshot.from_record(record) if record else None

    async def _check_lifetime(self, snapshot: FileSnapshot) -> None:
        """Reject expired and exhausted files, removing them on the way out."""
        if is_expired(snapshot.expires_at):
            await self._discard_file(snapshot, reason="expired")
            raise GoneError("File has expired", reason=GoneReason.EXPIRED)
        if is_exhausted(snapshot.max_downloads, snapshot.download_count):
            await self._discard_file(snapshot, reason="exhausted", keep_if_tokens_live=True)
            raise GoneError("Download limit reached", reason=GoneReason.LIMIT_REACHED)

    async def _discard_file(self, snapshot: FileSnapshot, *, reason: str, keep_if_tokens_live: bool = False) -> None:
        # Best effort; the caller already has its answer.
        try:
            if keep_if_tokens_live:
                with self.uow.read_only():
                    if self.uow.download_token_repo.has_live_tokens(snapshot.id, utcnow()):
                        return
            await self.storage.delete_object(snapshot.storage_key)
            with self.uow:
                self.uow.download_token_repo.delete_for_file(snapshot.id)
                self.uow.file_repo.delete_by_id(snapshot.id)
            logging.info("[dead_drop_cleanup] code=%s reason=%s", snapshot.code, reason)
        except Exception as exc:
            logging.warning("[dead_drop_cleanup] failed code=%s reason=%s: %s", snapshot.code, reason, exc)

    async def _discard_object(self, storage_key: str, code: str) -> None:
        # Promoted bytes that no row will ever reference.
        try:
            await self.storage.delete_object(storage_key)
        except Exception as exc:
            logging.warning("[upload_cleanup] failed to drop object code=%s: %s", code, exc)

    async def _discard_session(self, code: str) -> None:
        try:
            with self.uow:
                self.uow.upload_session_repo.delete(code)
            await self.storage.abort_upload(code)
        except Exception as exc:
            logging.warning("[upload_cleanup] failed code=%s: %s", code, exc)

    async def describe(self, code: str) -> FileDescription:
        self._require_storage("File downloads are temporarily disabled")
        code = self._validate_code(code)

        snapshot = self._load_file(code)
        if snapshot is None:
            raise NotFoundError(FILE_NOT_FOUND)
        await self._check_lifetime(snapshot)

        return FileDescription(
            name=snapshot.original_name,
            size=snapshot.size,
            expires_at=snapshot.expires_at,
            requires_password=snapshot.password_hash is not None,
            downloads_remaining=downloads_remaining(snapshot.max_downloads, snapshot.download_count),
        )

    async def prepare_download(self, code: str, password: str | None = None) -> DownloadGrant:
        """Count one download and issue a single-use token for the bytes.

        Checks run in a fixed order (existence, expiry, exhaustion, password)
        and the counter only moves through a compare-and-swap on its previous
        value. The token is written in the same transaction as the increment.
        """
        self._require_storage("File downloads are temporarily disabled")
        code = self._validate_code(code)

        async def _attempt(attempt_no: int) -> DownloadGrant | None:
            snapshot = self._load_file(code)
            if snapshot is None:
                raise NotFoundError(FILE_NOT_FOUND)
            await self._check_lifetime(snapshot)

            upgraded_hash = None
            if snapshot.password_hash:
                if not password:
                    raise PasswordRequiredError()
                valid, upgraded_hash = verify_and_update(password, snapshot.password_hash)
                if not valid:
                    raise PasswordIncorrectError()

            new_count = snapshot.download_count + 1
            delete_after = snapshot.max_downloads != UNLIMITED_DOWNLOADS and new_count >= snapshot.max_downloads
            token = generate_download_token()
            token_expires_at = utcnow() + timedelta(minutes=settings.DOWNLOAD_TOKEN_TTL_MINUTES)

            with self.uow:
                if not self.uow.file_repo.increment_download_count(
                    snapshot.id,
                    expected_count=snapshot.download_count,
                    password_hash=upgraded_hash,
                ):
                    logging.info("[download_prepare] code=%s attempt=%s conflict", code, attempt_no)
                    return None
                self.uow.download_token_repo.add(
                    DownloadToken(
                        token=token,
                        file_id=snapshot.id,
                        code=code,
                        delete_after=delete_after,
                        expires_at=token_expires_at,
                    )
                )

            logging.info(
                "[download_prepare] code=%s count=%s delete_after=%s",
                code,
                new_count,
                delete_after,
            )
            return DownloadGrant(
                token=token,
                download_url=f"{self.base_url}/api/download/{code}/file?token={token}",
                expires_at=token_expires_at,
                delete_after=delete_after,
            )

        return await with_optimistic_retry(_attempt, max_attempts=self.retry_attempts, operation="Download")

    async def redeem_token(self, code: str, token: str | None) -> FileDownload:
        storage = self._require_storage("File downloads are temporarily disabled")
        code = self._validate_code(code)
        if not token:
            raise NotFoundError(TOKEN_NOT_FOUND)

        with self.uow.read_only():
            row = self.uow.download_token_repo.get(token)
            if row is None or row.code != code:
                raise NotFoundError(TOKEN_NOT_FOUND)
            file_id = row.file_id
            delete_after = row.delete_after
            token_expires_at = as_utc(row.expires_at)

        with self.uow:
            consumed = self.uow.download_token_repo.consume(token)
        if not consumed:
            raise NotFoundError(TOKEN_NOT_FOUND)
        if is_expired(token_expires_at):
            raise GoneError("Download link has expired", reason=GoneReason.EXPIRED)

        with self.uow.read_only():
            record = self.uow.file_repo.get_by_id(file_id)
            snapshot = FileSnapshot.from_record(record) if record else None
        if snapshot is None:
            raise NotFoundError(FILE_NOT_FOUND)

        chunks = storage.stream_object(snapshot.storage_key, chunk_size=self.chunk_size)
        try:
            first_chunk = await chunks.__anext__()
        except StopAsyncIteration:
            first_chunk = b""
        except FileNotFoundError as exc:
            raise NotFoundError(FILE_NOT_FOUND) from exc

        async def _body() -> AsyncIterator[bytes]:
            if first_chunk:
                yield first_chunk
            async for chunk in chunks:
                yield chunk
            if delete_after:
                await self._discard_file(snapshot, reason="delivered", keep_if_tokens_live=True)

        logging.info("[download_redeem] code=%s delete_after=%s", code, delete_after)
        return FileDownload(
            name=snapshot.original_name,
            mime_type=snapshot.mime_type or DEFAULT_MIME_TYPE,
            size=snapshot.size,
            chunks=_body(),
        )

    async def init_upload(
        self,
        *,
        filename: str | None,
        size: int,
        mime_type: str | None,
        expiry_minutes: int | None = None,
        max_downloads: int | None = None,
        password: str | None = None,
    ) -> UploadInitResult:
        if not self.enabled:
            raise FeatureDisabledError("File uploads are temporarily disabled")
        draft = UploadDraft(file_name=filename or "", size=size, mime_type=mime_type or DEFAULT_MIME_TYPE)
        draft.validate(
            max_size_bytes=settings.MAX_FILE_SIZE_BYTES,
            allowed_mime_types=settings.ALLOWED_MIME_TYPES,
        )
        storage = self._require_storage("File uploads are temporarily disabled")

        minutes = clamp_minutes(
            expiry_minutes,
            default=settings.DEFAULT_EXPIRY_MINUTES,
            maximum=settings.MAX_EXPIRY_MINUTES,
        )
        if max_downloads not in settings.ALLOWED_MAX_DOWNLOADS:
            max_downloads = settings.DEFAULT_MAX_DOWNLOADS
        name = sanitize_filename(draft.file_name)
        plain_password = normalize_password(password)
        password_hash = hash_password(plain_password) if plain_password else None
        now = utcnow()
        expires_at = now + timedelta(minutes=minutes)
        session_expires_at = now + timedelta(minutes=settings.UPLOAD_SESSION_TTL_MINUTES)

        for _ in range(self.code_attempts):
            code = generate_file_code()
            try:
                with self.uow:
                    if self.uow.file_repo.code_exists(code):
                        continue
                    self.uow.upload_session_repo.add(
                        UploadSession(
                            code=code,
                            storage_key=f"{code}-{generate_storage_suffix()}",
                            original_name=name,
                            size=draft.size,
                            mime_type=draft.mime_type,
                            expires_at=expires_at,
                            max_downloads=max_downloads,
                            password_hash=password_hash,
                            session_expires_at=session_expires_at,
                        )
                    )
            except IntegrityError:
                logging.info("[upload_init] code collision code=%s", code)
                continue

            try:
                await storage.init_upload(code)
            except Exception:
                await self._discard_session(code)
                raise
            logging.info("[upload_init] code=%s size=%s expires_at=%s", code, draft.size, expires_at.isoformat())
            return UploadInitResult(
                code=code,
                upload_url=f"{self.base_url}/api/upload/{code}",
                expires_at=expires_at,
            )

        raise StorageError("Failed to generate unique code")

    async def _live_session(self, code: str) -> SessionSnapshot:
        session = self._load_session(code)
        if session is None:
            raise NotFoundError("Upload session not found")
        if is_expired(session.session_expires_at):
            await self._discard_session(code)
            raise GoneError("Upload session has expired", reason=GoneReason.EXPIRED)
        return session

    async def append_upload(self, code: str, chunk_stream: AsyncIterable[bytes]) -> UploadAppendResult:
        storage = self._require_storage("File uploads are temporarily disabled")
        code = self._validate_code(code)
        session = await self._live_session(code)

        received = await storage.get_upload_size(code)
        async for chunk in chunk_stream:
            if not chunk:
                continue
            received += len(chunk)
            if received > session.size:
                raise ValidationError("Upload exceeds declared file size")
            await storage.append_upload_chunk(code, chunk)

        return UploadAppendResult(code=code, received=await storage.get_upload_size(code))

    async def complete_upload(self, code: str) -> UploadCompleteResult:
        storage = self._require_storage("File uploads are temporarily disabled")
        code = self._validate_code(code)
        session = await self._live_session(code)

        received = await storage.get_upload_size(code)
        if received != session.size:
            raise ValidationError(f"Upload incomplete: received {received} of {session.size} bytes")

        start = time.perf_counter()
        try:
            await storage.promote_upload(code, session.storage_key)
        except FileNotFoundError as exc:
            raise ConflictError("Upload already completed") from exc

        try:
            with self.uow:
                if self.uow.upload_session_repo.delete(code) != 1:
                    raise ConflictError("Upload already completed")
                self.uow.file_repo.add(
                    FileRecord(
                        id=uuid.uuid4().hex,
                        code=code,
                        storage_key=session.storage_key,
                        original_name=session.original_name,
                        size=session.size,
                        mime_type=session.mime_type,
                        expires_at=session.expires_at,
                        max_downloads=session.max_downloads,
                        download_count=0,
                        password_hash=session.password_hash,
                        downloaded=False,
                    )
                )
        except ConflictError:
            await self._discard_object(session.storage_key, code)
            raise
        except IntegrityError as exc:
            await self._discard_object(session.storage_key, code)
            raise ConflictError("Upload code already in use") from exc

        logging.info(
            "[upload_complete] code=%s size=%s elapsed_ms=%s",
            code,
            session.size,
            int((time.perf_counter() - start) * 1000),
        )
        return UploadCompleteResult(
            code=code,
            name=session.original_name,
            size=session.size,
            expires_at=session.expires_at,
            max_downloads=session.max_downloads,
        )

    async def abort_upload(self, code: str) -> None:
        storage = self._require_storage("File uploads are temporarily disabled")
        code = self._validate_code(code)
        with self.uow:
            self.uow.upload_session_repo.delete(code)
        await storage.abort_upload(code)
        logging.info("[upload_abort] code=%s", code)
