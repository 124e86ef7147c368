from __future__ import annotations

from datetime import datetime

from vanish.schemas.common import CamelModel


class ShareCreateRequest(CamelModel):
    type: str | None = None
    content: str | None = None
    expiry_minutes: int | None = None
    password: str | None = None
    burn_after_reading: bool = False
    language: str | None = None
    original_name: str | None = None
    mime_type: str | None = None


class ShareCreateResponse(CamelModel):
    code: str
    url: str
    expires_at: datetime


class ShareRead(CamelModel):
    type: str
    content: str
    language: str | None = None
    original_name: str | None = None
    mime_type: str | None = None
    expires_at: datetime
    burn_after_reading: bool
    burned: bool
    requires_password: bool
