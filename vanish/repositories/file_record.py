from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from vanish.models.file_record import FileRecord


class FileRecordRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, code: str) -> Optional[FileRecord]:
        stmt = (
            select(FileRecord)
            .where(FileRecord.code == code)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_id(self, file_id: str) -> Optional[FileRecord]:
        stmt = (
            select(FileRecord)
            .where(FileRecord.id == file_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def code_exists(self, code: str) -> bool:
        stmt = select(FileRecord.id).where(FileRecord.code == code)
        return self.db.execute(stmt).first() is not None

    def add(self, record: FileRecord) -> FileRecord:
        self.db.add(record)
        self.db.flush()
        self.db.refresh(record)
        return record

    def increment_download_count(
        self, file_id: str, *, expected_count: int, password_hash: str | None = None
    ) -> bool:
        """Counter compare-and-swap; False when another download moved the counter first.

        A ``password_hash`` replaces the stored one in the same statement.
        """
        values = {"download_count": expected_count + 1, "downloaded": True}
        if password_hash is not None:
            values["password_hash"] = password_hash
        stmt = (
            update(FileRecord)
            .where(FileRecord.id == file_id, FileRecord.download_count == expected_count)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def delete_by_id(self, file_id: str) -> int:
        stmt = delete(FileRecord).where(FileRecord.id == file_id).execution_options(synchronize_session=False)
        return self.db.execute(stmt).rowcount

    def list_expired(self, now: datetime, *, limit: int = 100) -> list[FileRecord]:
        stmt = (
            select(FileRecord)
            .where(FileRecord.expires_at < now)
            .order_by(FileRecord.expires_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
