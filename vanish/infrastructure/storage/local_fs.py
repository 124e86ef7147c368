from __future__ import annotations

import hashlib
import json
import os
import threading
from pathlib import Path
from typing import Any, AsyncIterator

import anyio

from vanish.exceptions.exceptions import PreconditionFailedError
from vanish.infrastructure.storage.base import StorageBackend, StoredDocument


class LocalFileSystemStorage(StorageBackend):
    """Local FS storage backend with temp, object and document namespaces.

    Conditional document writes are serialized by a process-local lock, so the
    compare-and-replace is only atomic within a single process.
    """

    def __init__(self, root: Path):
        self.root = root
        self.temp_root = self.root / "tmp"
        self.object_root = self.root / "objects"
        self.temp_root.mkdir(parents=True, exist_ok=True)
        self.object_root.mkdir(parents=True, exist_ok=True)
        self._document_lock = threading.Lock()

    def _temp_path(self, upload_id: str) -> Path:
        return self.temp_root / f"{upload_id}.part"

    def _object_path(self, storage_key: str) -> Path:
        normalized = Path(storage_key)
        if not storage_key or normalized.is_absolute() or ".." in normalized.parts:
            raise ValueError("Invalid storage key")
        return self.object_root / normalized

    @staticmethod
    def _etag(payload: bytes) -> str:
        return hashlib.sha256(payload).hexdigest()

    async def init_upload(self, upload_id: str) -> None:
        path = self._temp_path(upload_id)

        def _init() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("wb"):
                return

        await anyio.to_thread.run_sync(_init)

    async def append_upload_chunk(self, upload_id: str, chunk: bytes) -> None:
        path = self._temp_path(upload_id)

        def _append() -> None:
            if not path.exists():
                raise FileNotFoundError(f"Upload temp file not found: {path}")
            with path.open("ab") as handle:
                handle.write(chunk)

        await anyio.to_thread.run_sync(_append)

    async def get_upload_size(self, upload_id: str) -> int:
        path = self._temp_path(upload_id)
        return await anyio.to_thread.run_sync(lambda: path.stat().st_size if path.exists() else 0)

    async def abort_upload(self, upload_id: str) -> None:
        path = self._temp_path(upload_id)
        await anyio.to_thread.run_sync(lambda: path.unlink(missing_ok=True))

    async def promote_upload(self, upload_id: str, storage_key: str) -> bool:
        src = self._temp_path(upload_id)
        dst = self._object_path(storage_key)

        def _promote() -> bool:
            if not src.exists():
                raise FileNotFoundError(f"Upload temp file not found: {src}")
            dst.parent.mkdir(parents=True, exist_ok=True)
            if dst.exists():
                src.unlink(missing_ok=True)
                return False
            src.replace(dst)
            return True

        return await anyio.to_thread.run_sync(_promote)

    async def stream_object(
        self,
        storage_key: str,
        *,
        chunk_size: int = 1024 * 1024,
    ) -> AsyncIterator[bytes]:
        path = self._object_path(storage_key)
        handle = await anyio.to_thread.run_sync(lambda: path.open("rb"))
        try:
            while True:
                data = await anyio.to_thread.run_sync(handle.read, chunk_size)
                if not data:
                    break
                yield data
        finally:
            await anyio.to_thread.run_sync(handle.close)

    async def delete_object(self, storage_key: str) -> None:
        path = self._object_path(storage_key)
        await anyio.to_thread.run_sync(lambda: path.unlink(missing_ok=True))

    async def get_document(self, key: str) -> StoredDocument | None:
        path = self._object_path(key)

        def _read() -> StoredDocument | None:
            try:
                payload = path.read_bytes()
            except FileNotFoundError:
                return None
            return StoredDocument(data=json.loads(payload), etag=self._etag(payload))

        return await anyio.to_thread.run_sync(_read)

    async def put_document(
        self,
        key: str,
        data: dict[str, Any],
        *,
        if_match: str | None = None,
        if_none_match: bool = False,
    ) -> str:
        path = self._object_path(key)
        payload = json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8")

        def _write() -> str:
            with self._document_lock:
                exists = path.exists()
                if if_none_match and exists:
                    raise PreconditionFailedError(f"Document already exists: {key}")
                if if_match is not None:
                    if not exists or self._etag(path.read_bytes()) != if_match:
                        raise PreconditionFailedError(f"Document changed: {key}")
                path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = path.with_name(f"{path.name}.{threading.get_ident()}.tmp")
                tmp_path.write_bytes(payload)
                os.replace(tmp_path, path)
                return self._etag(payload)

        return await anyio.to_thread.run_sync(_write)
