from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from vanish.models.share import Share, ShareContent


class ShareRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, code: str) -> Optional[Share]:
        stmt = (
            select(Share)
            .where(Share.code == code)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def add_with_content(self, share: Share, content: ShareContent) -> Share:
        """Insert metadata and content rows together; a duplicate code raises IntegrityError."""
        self.db.add(content)
        self.db.flush()
        share.content_id = content.id
        self.db.add(share)
        self.db.flush()
        return share

    def record_view(
        self,
        share_id: str,
        *,
        expected_view_count: int,
        burn: bool,
        password_hash: str | None = None,
    ) -> bool:
        """View-count compare-and-swap.

        Burning also blanks the content row in the same transaction, so a
        destroyed share keeps no copy of its secret at rest.
        """
        values = {"view_count": expected_view_count + 1}
        if burn:
            values["burned"] = True
        if password_hash is not None:
            values["password_hash"] = password_hash
        stmt = (
            update(Share)
            .where(Share.id == share_id, Share.view_count == expected_view_count)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if self.db.execute(stmt).rowcount != 1:
            return False
        if burn:
            content_id = select(Share.content_id).where(Share.id == share_id).scalar_subquery()
            self.db.execute(
                update(ShareContent)
                .where(ShareContent.id == content_id)
                .values(content="")
                .execution_options(synchronize_session=False)
            )
        return True

    def delete_by_code(self, code: str) -> int:
        content_id = self.db.execute(select(Share.content_id).where(Share.code == code)).scalar_one_or_none()
        if content_id is None:
            return 0
        deleted = self.db.execute(
            delete(Share).where(Share.code == code).execution_options(synchronize_session=False)
        ).rowcount
        self.db.execute(
            delete(ShareContent).where(ShareContent.id == content_id).execution_options(synchronize_session=False)
        )
        return deleted

    def delete_expired(self, now: datetime) -> int:
        expired = self.db.execute(
            select(Share.id, Share.content_id).where(Share.expires_at < now)
        ).all()
        if not expired:
            return 0
        share_ids = [row.id for row in expired]
        content_ids = [row.content_id for row in expired]
        self.db.execute(delete(Share).where(Share.id.in_(share_ids)).execution_options(synchronize_session=False))
        self.db.execute(
            delete(ShareContent).where(ShareContent.id.in_(content_ids)).execution_options(synchronize_session=False)
        )
        return len(share_ids)
