import uuid
from datetime import timedelta

import pytest

from vanish.domain.policy import utcnow
from vanish.models.download_token import DownloadToken
from vanish.models.upload_session import UploadSession
from vanish.services.cleanup_service import CleanupService


def _add_token(uow, file_id, code, *, expires_in):
    with uow:
        uow.download_token_repo.add(
            DownloadToken(
                token=uuid.uuid4().hex,
                file_id=file_id,
                code=code,
                delete_after=False,
                expires_at=utcnow() + expires_in,
            )
        )


def _add_session(uow, code, *, expires_in):
    with uow:
        uow.upload_session_repo.add(
            UploadSession(
                code=code,
                storage_key=f"{code}-cafebabe-draft.txt",
                original_name="draft.txt",
                size=10,
                mime_type="text/plain",
                expires_at=utcnow() + timedelta(hours=1),
                max_downloads=1,
                session_expires_at=utcnow() + expires_in,
            )
        )


@pytest.mark.asyncio
async def test_cleanup_removes_only_expired_records(uow, storage, make_file, db_share_service):
    expired_id = make_file("11111111", expires_in=timedelta(minutes=-5))
    live_id = make_file("22222222")
    _add_token(uow, live_id, "22222222", expires_in=timedelta(minutes=-1))
    _add_token(uow, live_id, "22222222", expires_in=timedelta(minutes=5))
    _add_session(uow, "33333333", expires_in=timedelta(minutes=-1))
    _add_session(uow, "44444444", expires_in=timedelta(minutes=10))
    await storage.init_upload("33333333")
    await storage.init_upload("44444444")

    stale = await db_share_service.create(share_type="paste", content="old")
    fresh = await db_share_service.create(share_type="paste", content="new")
    with uow:
        share = uow.share_repo.get_by_code(stale.code)
        share.expires_at = share.expires_at - timedelta(days=60)

    stats = await CleanupService(uow, storage).run()

    assert stats.as_dict() == {
        "download_tokens": 1,
        "upload_sessions": 1,
        "files": 1,
        "shares": 1,
        "errors": 0,
    }
    assert "11111111-deadbeef-notes.txt" not in storage.objects
    assert "22222222-deadbeef-notes.txt" in storage.objects
    assert "33333333" not in storage.uploads
    assert "44444444" in storage.uploads
    with uow.read_only():
        assert uow.file_repo.get_by_id(expired_id) is None
        assert uow.file_repo.get_by_id(live_id) is not None
        assert uow.download_token_repo.has_live_tokens(live_id, utcnow())
        assert uow.upload_session_repo.get("33333333") is None
        assert uow.upload_session_repo.get("44444444") is not None
        assert uow.share_repo.get_by_code(stale.code) is None
        assert uow.share_repo.get_by_code(fresh.code) is not None


@pytest.mark.asyncio
async def test_cleanup_is_idempotent(uow, storage, make_file):
    make_file("11111111", expires_in=timedelta(minutes=-5))

    first = await CleanupService(uow, storage).run()
    second = await CleanupService(uow, storage).run()

    assert first.files == 1
    assert second.as_dict() == {
        "download_tokens": 0,
        "upload_sessions": 0,
        "files": 0,
        "shares": 0,
        "errors": 0,
    }


@pytest.mark.asyncio
async def test_cleanup_walks_every_batch(uow, storage, make_file):
    for index in range(5):
        make_file(f"1000000{index}", expires_in=timedelta(minutes=-5))

    stats = await CleanupService(uow, storage, batch_size=2).run()

    assert stats.files == 5
    assert storage.objects == {}


@pytest.mark.asyncio
async def test_cleanup_keeps_rows_whose_objects_could_not_be_deleted(uow, storage, make_file):
    file_id = make_file("11111111", expires_in=timedelta(minutes=-5))
    storage.fail_deletes = True

    stats = await CleanupService(uow, storage).run()

    assert stats.files == 0
    assert stats.errors == 1
    with uow.read_only():
        assert uow.file_repo.get_by_id(file_id) is not None

    storage.fail_deletes = False
    retry = await CleanupService(uow, storage).run()
    assert retry.files == 1


@pytest.mark.asyncio
async def test_cleanup_without_storage_still_clears_rows(uow, make_file):
    file_id = make_file("11111111", expires_in=timedelta(minutes=-5))

    stats = await CleanupService(uow, None).run()

    assert stats.files == 1
    with uow.read_only():
        assert uow.file_repo.get_by_id(file_id) is None
