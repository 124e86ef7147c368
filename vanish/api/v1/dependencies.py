from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from fastapi import Depends
from sqlalchemy.orm import Session

from vanish.core.config import settings
from vanish.core.unit_of_work import UnitOfWork
from vanish.database.db_setup import get_db
from vanish.infrastructure.storage.base import StorageBackend
from vanish.infrastructure.storage.local_fs import LocalFileSystemStorage
from vanish.services.cleanup_service import CleanupService
from vanish.services.dead_drop_service import DeadDropService
from vanish.services.share_service import ShareService
from vanish.services.share_store import BlobShareStore, DatabaseShareStore, ShareStore


@lru_cache(maxsize=1)
def _build_storage_backend() -> StorageBackend | None:
    # One instance per process: its document lock is the compare-and-swap primitive.
    if settings.STORAGE_BACKEND == "local":
        return LocalFileSystemStorage(Path(settings.UPLOAD_ROOT))
    if settings.STORAGE_BACKEND == "none":
        return None
    raise RuntimeError(f"Unsupported STORAGE_BACKEND: {settings.STORAGE_BACKEND}")


def get_storage() -> StorageBackend | None:
    return _build_storage_backend()


def get_share_store(
    db: Session = Depends(get_db),
    storage: StorageBackend | None = Depends(get_storage),
) -> ShareStore | None:
    if settings.SHARE_STORE_BACKEND == "blob":
        return BlobShareStore(storage) if storage is not None else None
    return DatabaseShareStore(UnitOfWork(session=db))


def get_dead_drop_service(
    db: Session = Depends(get_db),
    storage: StorageBackend | None = Depends(get_storage),
) -> DeadDropService:
    return DeadDropService(uow=UnitOfWork(session=db), storage=storage)


def get_share_service(store: ShareStore | None = Depends(get_share_store)) -> ShareService:
    return ShareService(store=store)


def get_cleanup_service(
    db: Session = Depends(get_db),
    storage: StorageBackend | None = Depends(get_storage),
) -> CleanupService:
    return CleanupService(uow=UnitOfWork(session=db), storage=storage)
