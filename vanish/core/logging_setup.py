from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from vanish.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# RequestContextMiddleware already writes one [http] line per request.
_QUIET_LOGGERS = ("uvicorn.access",)


def configure_logging() -> None:
    """Install the rotating file and console handlers on the root logger, once per process."""
    root_logger = logging.getLogger()
    if getattr(root_logger, "_vanish_configured", False):
        return

    log_file = Path(settings.LOG_FILE_PATH)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            filename=log_file,
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        ),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(settings.LOG_LEVEL)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    setattr(root_logger, "_vanish_configured", True)
