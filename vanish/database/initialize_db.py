import logging

from vanish.models import (
    download_token,
    file_record,
    share,
    upload_session,
)
from vanish.database.db_setup import Base, engine

logger = logging.getLogger(__name__)


def init_db():
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        logger.exception(f"[-] Failed to create database tables: {e}")
        raise
