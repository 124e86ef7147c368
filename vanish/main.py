"""Vanish application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from vanish.api.v1 import downloads, maintenance, shares, uploads
from vanish.core.config import settings
from vanish.core.logging_setup import configure_logging
from vanish.core.request_context import RequestContextMiddleware
from vanish.database.initialize_db import init_db
from vanish.exceptions.handlers import register_exception_handlers


@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging()
    init_db()
    logging.info(
        "[startup] environment=%s storage=%s share_store=%s",
        settings.ENVIRONMENT,
        settings.STORAGE_BACKEND,
        settings.SHARE_STORE_BACKEND,
    )
    yield


def create_app() -> FastAPI:
    app = FastAPI(title="Vanish", version="0.1.0", lifespan=lifespan)
    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)

    app.include_router(maintenance.router)
    app.include_router(downloads.router)
    app.include_router(uploads.router)
    app.include_router(shares.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
