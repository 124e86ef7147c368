from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from vanish.models.download_token import DownloadToken


class DownloadTokenRepo:
    def __init__(self, db: Session):
        self.db = db

    def get(self, token: str) -> Optional[DownloadToken]:
        stmt = (
            select(DownloadToken)
            .where(DownloadToken.token == token)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def add(self, token: DownloadToken) -> DownloadToken:
        self.db.add(token)
        self.db.flush()
        return token

    def consume(self, token: str) -> bool:
        """Delete the token; only the caller that removes the row owns the redemption."""
        stmt = delete(DownloadToken).where(DownloadToken.token == token).execution_options(synchronize_session=False)
        return self.db.execute(stmt).rowcount == 1

    def delete_for_file(self, file_id: str) -> int:
        stmt = delete(DownloadToken).where(DownloadToken.file_id == file_id).execution_options(synchronize_session=False)
        return self.db.execute(stmt).rowcount

    def delete_expired(self, now: datetime) -> int:
        stmt = delete(DownloadToken).where(DownloadToken.expires_at < now).execution_options(synchronize_session=False)
        return self.db.execute(stmt).rowcount

    def has_live_tokens(self, file_id: str, now: datetime) -> bool:
        stmt = select(DownloadToken.token).where(
            DownloadToken.file_id == file_id, DownloadToken.expires_at >= now
        )
        return self.db.execute(stmt).first() is not None
