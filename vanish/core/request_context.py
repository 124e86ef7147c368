from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from vanish.exceptions.handlers import NO_STORE_HEADERS

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id, forbids caching and logs the outcome."""

    _SKIP_PREFIXES = ("/docs", "/openapi", "/redoc", "/favicon.ico")

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = request_id
        started_at = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            for header, value in NO_STORE_HEADERS.items():
                response.headers.setdefault(header, value)
            return response
        finally:
            if not request.url.path.startswith(self._SKIP_PREFIXES):
                duration_ms = int((time.perf_counter() - started_at) * 1000)
                logger.info(
                    "[http] method=%s path=%s status=%s duration_ms=%s request_id=%s",
                    request.method,
                    request.url.path,
                    status_code,
                    duration_ms,
                    request_id,
                )
