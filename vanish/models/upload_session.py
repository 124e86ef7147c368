from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from vanish.database.db_setup import Base


class UploadSession(Base):
    __tablename__ = "upload_sessions"

    code: Mapped[str] = mapped_column(String(16), primary_key=True)
    storage_key: Mapped[str] = mapped_column(String(600), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(nullable=False)
    mime_type: Mapped[str] = mapped_column(String(120), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    max_downloads: Mapped[int] = mapped_column(nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    session_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
