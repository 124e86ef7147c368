import asyncio
import copy
import uuid
from typing import Any, AsyncIterator, Callable

from vanish.exceptions.exceptions import PreconditionFailedError
from vanish.infrastructure.storage.base import StorageBackend, StoredDocument


class InMemoryStorage(StorageBackend):
    """Dict-backed storage with hooks for simulating concurrent writers.

    ``before_put`` runs ahead of every conditional write, letting a test slip
    in a competing update. ``forced_conflicts`` makes the next N writes fail
    their precondition outright.
    """

    def __init__(self):
        self.uploads: dict[str, bytearray] = {}
        self.objects: dict[str, bytes] = {}
        self.documents: dict[str, tuple[dict, str]] = {}
        self.before_put: Callable[[str], None] | None = None
        self.forced_conflicts = 0
        self.put_calls = 0
        self.fail_deletes = False

    async def init_upload(self, upload_id: str) -> None:
        self.uploads[upload_id] = bytearray()

    async def append_upload_chunk(self, upload_id: str, chunk: bytes) -> None:
        if upload_id not in self.uploads:
            raise FileNotFoundError(upload_id)
        self.uploads[upload_id].extend(chunk)

    async def get_upload_size(self, upload_id: str) -> int:
        return len(self.uploads.get(upload_id, b""))

    async def abort_upload(self, upload_id: str) -> None:
        self.uploads.pop(upload_id, None)

    async def promote_upload(self, upload_id: str, storage_key: str) -> bool:
        if upload_id not in self.uploads:
            raise FileNotFoundError(upload_id)
        data = bytes(self.uploads.pop(upload_id))
        if storage_key in self.objects:
            return False
        self.objects[storage_key] = data
        return True

    async def stream_object(self, storage_key: str, *, chunk_size: int = 1024 * 1024) -> AsyncIterator[bytes]:
        if storage_key not in self.objects:
            raise FileNotFoundError(storage_key)
        data = self.objects[storage_key]
        for offset in range(0, len(data), chunk_size):
            yield data[offset:offset + chunk_size]

    async def delete_object(self, storage_key: str) -> None:
        if self.fail_deletes:
            raise OSError("storage unavailable")
        self.objects.pop(storage_key, None)
        self.documents.pop(storage_key, None)

    async def get_document(self, key: str) -> StoredDocument | None:
        entry = self.documents.get(key)
        # Yield after reading so concurrent readers all see the same revision.
        await asyncio.sleep(0)
        if entry is None:
            return None
        data, etag = entry
        return StoredDocument(data=copy.deepcopy(data), etag=etag)

    async def put_document(
        self,
        key: str,
        data: dict[str, Any],
        *,
        if_match: str | None = None,
        if_none_match: bool = False,
    ) -> str:
        self.put_calls += 1
        if self.before_put is not None:
            self.before_put(key)
        if self.forced_conflicts > 0:
            self.forced_conflicts -= 1
            raise PreconditionFailedError(key)
        existing = self.documents.get(key)
        if if_none_match and existing is not None:
            raise PreconditionFailedError(key)
        if if_match is not None and (existing is None or existing[1] != if_match):
            raise PreconditionFailedError(key)
        etag = uuid.uuid4().hex
        self.documents[key] = (copy.deepcopy(data), etag)
        return etag
