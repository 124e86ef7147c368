from __future__ import annotations

from fastapi import APIRouter, Depends

from vanish.api.v1.dependencies import get_share_service
from vanish.schemas.common import PasswordRequest
from vanish.schemas.share import ShareCreateRequest, ShareCreateResponse, ShareRead
from vanish.services.share_service import ShareService, ShareView

router = APIRouter(prefix="/api/share", tags=["Shares"])


def _to_read(view: ShareView) -> ShareRead:
    snapshot = view.snapshot
    return ShareRead(
        type=snapshot.type,
        content=snapshot.content,
        language=snapshot.language,
        original_name=snapshot.original_name,
        mime_type=snapshot.mime_type,
        expires_at=snapshot.expires_at,
        burn_after_reading=snapshot.burn_after_reading,
        burned=snapshot.burned,
        requires_password=view.requires_password,
    )


@router.post("", response_model=ShareCreateResponse)
async def create_share(payload: ShareCreateRequest, service: ShareService = Depends(get_share_service)):
    created = await service.create(
        share_type=payload.type,
        content=payload.content,
        expiry_minutes=payload.expiry_minutes,
        password=payload.password,
        burn_after_reading=payload.burn_after_reading,
        language=payload.language,
        original_name=payload.original_name,
        mime_type=payload.mime_type,
    )
    return ShareCreateResponse(code=created.code, url=created.url, expires_at=created.expires_at)


@router.get("/{code}", response_model=ShareRead, response_model_exclude_none=True)
async def get_share(code: str, service: ShareService = Depends(get_share_service)):
    return _to_read(await service.retrieve(code))


@router.post("/{code}", response_model=ShareRead, response_model_exclude_none=True)
async def unlock_share(
    code: str,
    payload: PasswordRequest | None = None,
    service: ShareService = Depends(get_share_service),
):
    return _to_read(await service.retrieve(code, password=payload.password if payload else None))
