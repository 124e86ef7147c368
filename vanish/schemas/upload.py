from __future__ import annotations

from datetime import datetime

from pydantic import Field

from vanish.schemas.common import CamelModel


class UploadInitRequest(CamelModel):
    filename: str = Field(default="", max_length=1024)
    size: int
    mime_type: str | None = None
    expiry_minutes: int | None = None
    max_downloads: int | None = None
    password: str | None = None


class UploadInitResponse(CamelModel):
    code: str
    upload_url: str
    expires_at: datetime


class UploadAppendResponse(CamelModel):
    code: str
    received: int


class UploadCompleteResponse(CamelModel):
    code: str
    name: str
    size: int
    expires_at: datetime
    max_downloads: int
