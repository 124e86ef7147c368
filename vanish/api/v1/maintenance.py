from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Header

from vanish.api.v1.dependencies import get_cleanup_service
from vanish.core.config import settings
from vanish.domain.policy import utcnow
from vanish.exceptions.handlers import error_response
from vanish.services.cleanup_service import CleanupService

router = APIRouter(prefix="/api", tags=["Maintenance"])


def _authorized(authorization: str | None) -> bool:
    if not settings.CRON_SECRET:
        return True
    expected = f"Bearer {settings.CRON_SECRET}"
    return hmac.compare_digest((authorization or "").encode(), expected.encode())


@router.get("/cron/cleanup")
async def run_cleanup(
    authorization: str | None = Header(default=None),
    service: CleanupService = Depends(get_cleanup_service),
):
    if not _authorized(authorization):
        return error_response(401, "Unauthorized")
    stats = await service.run()
    return {"success": True, "stats": stats.as_dict(), "timestamp": utcnow().isoformat()}


@router.get("/health")
async def health():
    return {"status": "ok"}
