from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator


@dataclass(frozen=True)
class StoredDocument:
    data: dict[str, Any]
    etag: str


class StorageBackend(ABC):
    """Abstraction for blob storage: staged file uploads, stored objects and versioned JSON documents."""

    @abstractmethod
    async def init_upload(self, upload_id: str) -> None:
        """Initialize temporary upload target."""

    @abstractmethod
    async def append_upload_chunk(self, upload_id: str, chunk: bytes) -> None:
        """Append bytes to an in-progress upload."""

    @abstractmethod
    async def get_upload_size(self, upload_id: str) -> int:
        """Return bytes currently written for an in-progress upload."""

    @abstractmethod
    async def abort_upload(self, upload_id: str) -> None:
        """Abort and clean up temporary upload data. Missing uploads are ignored."""

    @abstractmethod
    async def promote_upload(self, upload_id: str, storage_key: str) -> bool:
        """
        Move temp upload to a permanent key.
        Returns True if newly stored, False if key already existed and temp upload was discarded.
        """

    @abstractmethod
    async def stream_object(
        self,
        storage_key: str,
        *,
        chunk_size: int = 1024 * 1024,
    ) -> AsyncIterator[bytes]:
        """Stream an object for download."""

    @abstractmethod
    async def delete_object(self, storage_key: str) -> None:
        """Delete object or document by key. Missing keys are ignored."""

    @abstractmethod
    async def get_document(self, key: str) -> StoredDocument | None:
        """Read a JSON document together with its current etag."""

    @abstractmethod
    async def put_document(
        self,
        key: str,
        data: dict[str, Any],
        *,
        if_match: str | None = None,
        if_none_match: bool = False,
    ) -> str:
        """
        Write a JSON document and return its new etag.

        ``if_match`` only writes when the stored etag is unchanged; ``if_none_match``
        only writes when no document exists yet. A failed condition raises
        PreconditionFailedError.
        """
