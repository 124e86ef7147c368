import os
import tempfile
import uuid
from datetime import timedelta

_TMP_ROOT = tempfile.mkdtemp(prefix="vanish-tests-")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", os.path.join(_TMP_ROOT, "logs"))
os.environ.setdefault("UPLOAD_ROOT", os.path.join(_TMP_ROOT, "storage"))
os.environ.setdefault("BASE_URL", "http://testserver")
os.environ.setdefault("CRON_SECRET", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vanish.api.v1.dependencies import get_storage
from vanish.core.unit_of_work import UnitOfWork
from vanish.database import initialize_db  # noqa: F401  registers the models
from vanish.database.db_setup import Base, get_db
from vanish.domain.policy import utcnow
from vanish.main import create_app
from vanish.models.file_record import FileRecord
from vanish.services.dead_drop_service import DeadDropService
from vanish.services.share_service import ShareService
from vanish.services.share_store import BlobShareStore, DatabaseShareStore

from fakes import InMemoryStorage


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def uow(db_session):
    return UnitOfWork(session=db_session)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def dead_drop(uow, storage):
    return DeadDropService(uow=uow, storage=storage, enabled=True, base_url="http://testserver")


@pytest.fixture
def db_share_service(uow):
    return ShareService(store=DatabaseShareStore(uow), enabled=True, base_url="http://testserver")


@pytest.fixture
def blob_share_service(storage):
    return ShareService(store=BlobShareStore(storage), enabled=True, base_url="http://testserver")


@pytest.fixture
def make_file(uow, storage):
    """Insert a finished dead-drop file and its stored bytes."""

    def _make_file(
        code="12345678",
        *,
        content=b"top secret bytes",
        max_downloads=1,
        download_count=0,
        expires_in=timedelta(hours=1),
        password_hash=None,
        mime_type="text/plain",
    ) -> FileRecord:
        storage_key = f"{code}-deadbeef-notes.txt"
        storage.objects[storage_key] = content
        with uow:
            record = uow.file_repo.add(
                FileRecord(
                    id=uuid.uuid4().hex,
                    code=code,
                    storage_key=storage_key,
                    original_name="notes.txt",
                    size=len(content),
                    mime_type=mime_type,
                    expires_at=utcnow() + expires_in,
                    max_downloads=max_downloads,
                    download_count=download_count,
                    password_hash=password_hash,
                    downloaded=download_count > 0,
                )
            )
            return record.id

    return _make_file


@pytest.fixture
def app(session_factory, storage):
    app = create_app()

    def _get_test_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_storage] = lambda: storage
    return app


@pytest.fixture
def client(app):
    # Not used as a context manager so the lifespan (logging files, create_all) stays out of tests.
    return TestClient(app)
