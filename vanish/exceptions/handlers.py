import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vanish.core.config import settings
from vanish.exceptions.exceptions import DomainError, ErrorKind

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {"Cache-Control": "no-store, private"}

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.GONE: status.HTTP_410_GONE,
    ErrorKind.AUTH_REQUIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.AUTH_FAILED: status.HTTP_403_FORBIDDEN,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.STORAGE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}

# Kinds that indicate something went wrong on our side and deserve a log line.
_LOGGED_KINDS = {ErrorKind.CONFLICT, ErrorKind.STORAGE}


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, **extra},
        headers=NO_STORE_HEADERS,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def _domain_handler(request: Request, exc: DomainError) -> JSONResponse:
        status_code = STATUS_BY_KIND[exc.kind]
        if exc.kind in _LOGGED_KINDS:
            logger.warning(
                "[domain_error] kind=%s path=%s request_id=%s message=%s",
                exc.kind.value,
                request.url.path,
                _request_id(request),
                exc.message,
            )
        return error_response(status_code, exc.message, **exc.extra)

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(_request: Request, _exc: RequestValidationError) -> JSONResponse:
        return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request body")

    @app.exception_handler(Exception)
    async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "[unhandled_error] path=%s request_id=%s: %s",
            request.url.path,
            _request_id(request),
            exc,
        )
        message = "An unexpected error occurred" if settings.is_production else str(exc) or "Unknown error"
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
