from __future__ import annotations

from datetime import datetime

from vanish.schemas.common import CamelModel


class FileDescriptionRead(CamelModel):
    name: str
    size: int
    expires_at: datetime
    requires_password: bool
    downloads_remaining: int | str


class DownloadGrantRead(CamelModel):
    token: str
    download_url: str
    expires_at: datetime
