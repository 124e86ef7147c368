from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from vanish.api.v1.dependencies import get_dead_drop_service
from vanish.exceptions.handlers import NO_STORE_HEADERS
from vanish.schemas.common import PasswordRequest
from vanish.schemas.download import DownloadGrantRead, FileDescriptionRead
from vanish.services.dead_drop_service import DeadDropService

router = APIRouter(prefix="/api/download", tags=["Dead Drop"])


@router.get("/{code}", response_model=FileDescriptionRead)
async def describe_file(code: str, service: DeadDropService = Depends(get_dead_drop_service)):
    description = await service.describe(code)
    return FileDescriptionRead(
        name=description.name,
        size=description.size,
        expires_at=description.expires_at,
        requires_password=description.requires_password,
        downloads_remaining=description.downloads_remaining,
    )


@router.post("/{code}", response_model=DownloadGrantRead)
async def prepare_download(
    code: str,
    payload: PasswordRequest | None = None,
    service: DeadDropService = Depends(get_dead_drop_service),
):
    grant = await service.prepare_download(code, password=payload.password if payload else None)
    return DownloadGrantRead(token=grant.token, download_url=grant.download_url, expires_at=grant.expires_at)


@router.get("/{code}/file")
async def download_file(
    code: str,
    token: str | None = Query(default=None),
    service: DeadDropService = Depends(get_dead_drop_service),
):
    download = await service.redeem_token(code, token)
    headers = {
        **NO_STORE_HEADERS,
        "Content-Disposition": f"attachment; filename*=UTF-8''{quote(download.name)}",
        "Content-Length": str(download.size),
    }
    return StreamingResponse(download.chunks, media_type=download.mime_type, headers=headers)
