from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from vanish.models.upload_session import UploadSession


class UploadSessionRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, code: str) -> Optional[UploadSession]:
        stmt = (
            select(UploadSession)
            .where(UploadSession.code == code)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def add(self, upload_session: UploadSession) -> UploadSession:
        self.db.add(upload_session)
        self.db.flush()
        self.db.refresh(upload_session)
        return upload_session

    def delete(self, code: str) -> int:
        stmt = delete(UploadSession).where(UploadSession.code == code).execution_options(synchronize_session=False)
        return self.db.execute(stmt).rowcount

    def list_expired(self, now: datetime) -> list[UploadSession]:
        stmt = select(UploadSession).where(UploadSession.session_expires_at < now)
        return list(self.db.execute(stmt).scalars().all())
