from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status

from vanish.api.v1.dependencies import get_dead_drop_service
from vanish.schemas.upload import (
    UploadAppendResponse,
    UploadCompleteResponse,
    UploadInitRequest,
    UploadInitResponse,
)
from vanish.services.dead_drop_service import DeadDropService

router = APIRouter(prefix="/api/upload", tags=["Dead Drop"])


@router.post("", response_model=UploadInitResponse)
async def init_upload(payload: UploadInitRequest, service: DeadDropService = Depends(get_dead_drop_service)):
    initialized = await service.init_upload(
        filename=payload.filename,
        size=payload.size,
        mime_type=payload.mime_type,
        expiry_minutes=payload.expiry_minutes,
        max_downloads=payload.max_downloads,
        password=payload.password,
    )
    return UploadInitResponse(
        code=initialized.code,
        upload_url=initialized.upload_url,
        expires_at=initialized.expires_at,
    )


@router.put("/{code}", response_model=UploadAppendResponse)
async def append_upload(code: str, request: Request, service: DeadDropService = Depends(get_dead_drop_service)):
    appended = await service.append_upload(code, request.stream())
    return UploadAppendResponse(code=appended.code, received=appended.received)


@router.post("/{code}/complete", response_model=UploadCompleteResponse)
async def complete_upload(code: str, service: DeadDropService = Depends(get_dead_drop_service)):
    completed = await service.complete_upload(code)
    return UploadCompleteResponse(
        code=completed.code,
        name=completed.name,
        size=completed.size,
        expires_at=completed.expires_at,
        max_downloads=completed.max_downloads,
    )


@router.delete("/{code}", status_code=status.HTTP_204_NO_CONTENT)
async def abort_upload(code: str, service: DeadDropService = Depends(get_dead_drop_service)):
    await service.abort_upload(code)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
