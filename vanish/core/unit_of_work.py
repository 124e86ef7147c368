from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session
from vanish.repositories.download_token import DownloadTokenRepo
from vanish.repositories.file_record import FileRecordRepo
from vanish.repositories.share import ShareRepo
from vanish.repositories.upload_session import UploadSessionRepo


class UnitOfWork:
    """Groups repository calls into one database transaction.

    Repositories are created lazily on first access. Used as a context manager
    the transaction commits on a clean exit and rolls back when the block raises.
    """
    def __init__(self, session: Session):
        self.session = session
        self._file_repo = None
        self._upload_session_repo = None
        self._download_token_repo = None
        self._share_repo = None

    @property
    def file_repo(self) -> FileRecordRepo:
        if self._file_repo is None:
            self._file_repo = FileRecordRepo(self.session)
        return self._file_repo

    @property
    def upload_session_repo(self) -> UploadSessionRepo:
        if self._upload_session_repo is None:
            self._upload_session_repo = UploadSessionRepo(self.session)
        return self._upload_session_repo

    @property
    def download_token_repo(self) -> DownloadTokenRepo:
        if self._download_token_repo is None:
            self._download_token_repo = DownloadTokenRepo(self.session)
        return self._download_token_repo

    @property
    def share_repo(self) -> ShareRepo:
        if self._share_repo is None:
            self._share_repo = ShareRepo(self.session)
        return self._share_repo

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type:
            self.rollback()
        else:
            self.commit()

    @contextmanager
    def read_only(self) -> Iterator["UnitOfWork"]:
        """Read without committing; the open transaction is rolled back afterwards.

        Ending the transaction keeps the next read from seeing a stale snapshot.
        """
        try:
            yield self
        finally:
            self.rollback()
