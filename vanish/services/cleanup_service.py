from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime

from vanish.core.unit_of_work import UnitOfWork
from vanish.domain.policy import utcnow
from vanish.infrastructure.storage.base import StorageBackend


@dataclass
class CleanupStats:
    download_tokens: int = 0
    upload_sessions: int = 0
    files: int = 0
    shares: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class CleanupService:
    """Sweeps expired rows that nobody will visit again.

    Access-time cleanup handles most records; this only reclaims leftovers.
    Blob-backed shares are not swept because documents cannot be listed.
    """

    def __init__(self, uow: UnitOfWork, storage: StorageBackend | None, *, batch_size: int = 100):
        self.uow = uow
        self.storage = storage
        self.batch_size = batch_size

    async def run(self, now: datetime | None = None) -> CleanupStats:
        now = now or utcnow()
        stats = CleanupStats()

        with self.uow:
            stats.download_tokens = self.uow.download_token_repo.delete_expired(now)

        await self._sweep_upload_sessions(now, stats)
        await self._sweep_files(now, stats)

        with self.uow:
            stats.shares = self.uow.share_repo.delete_expired(now)

        logging.info("[cleanup] %s", stats.as_dict())
        return stats

    async def _sweep_upload_sessions(self, now: datetime, stats: CleanupStats) -> None:
        with self.uow.read_only():
            codes = [row.code for row in self.uow.upload_session_repo.list_expired(now)]

        for code in codes:
            if self.storage is not None:
                try:
                    await self.storage.abort_upload(code)
                except Exception as exc:
                    stats.errors += 1
                    logging.warning("[cleanup] failed to drop staged upload code=%s: %s", code, exc)
                    continue
            with self.uow:
                stats.upload_sessions += self.uow.upload_session_repo.delete(code)

    async def _sweep_files(self, now: datetime, stats: CleanupStats) -> None:
        while True:
            with self.uow.read_only():
                batch = [
                    (row.id, row.code, row.storage_key)
                    for row in self.uow.file_repo.list_expired(now, limit=self.batch_size)
                ]
            if not batch:
                return

            removed = 0
            for file_id, code, storage_key in batch:
                if self.storage is not None:
                    try:
                        await self.storage.delete_object(storage_key)
                    except Exception as exc:
                        stats.errors += 1
                        logging.warning("[cleanup] failed to delete object code=%s: %s", code, exc)
                        continue
                with self.uow:
                    self.uow.download_token_repo.delete_for_file(file_id)
                    removed += self.uow.file_repo.delete_by_id(file_id)

            stats.files += removed
            # Rows whose objects could not be deleted stay for the next sweep.
            if removed == 0 or len(batch) < self.batch_size:
                return
