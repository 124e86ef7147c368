import pytest

from vanish.exceptions.exceptions import PreconditionFailedError
from vanish.infrastructure.storage.local_fs import LocalFileSystemStorage


@pytest.fixture
def fs_storage(tmp_path):
    return LocalFileSystemStorage(tmp_path)


@pytest.mark.asyncio
async def test_staged_upload_is_promoted_and_streamed(fs_storage):
    await fs_storage.init_upload("12345678")
    await fs_storage.append_upload_chunk("12345678", b"hello ")
    await fs_storage.append_upload_chunk("12345678", b"world")
    assert await fs_storage.get_upload_size("12345678") == 11

    assert await fs_storage.promote_upload("12345678", "12345678-abcd-hello.txt")
    assert await fs_storage.get_upload_size("12345678") == 0

    chunks = [chunk async for chunk in fs_storage.stream_object("12345678-abcd-hello.txt", chunk_size=4)]
    assert b"".join(chunks) == b"hello world"


@pytest.mark.asyncio
async def test_delete_is_idempotent(fs_storage):
    await fs_storage.delete_object("missing-key")
    await fs_storage.abort_upload("missing-upload")


@pytest.mark.asyncio
async def test_storage_keys_cannot_escape_root(fs_storage):
    with pytest.raises(ValueError):
        await fs_storage.delete_object("../outside")


@pytest.mark.asyncio
async def test_document_create_only_once(fs_storage):
    etag = await fs_storage.put_document("share-abc12345.json", {"viewCount": 0}, if_none_match=True)
    assert etag

    with pytest.raises(PreconditionFailedError):
        await fs_storage.put_document("share-abc12345.json", {"viewCount": 0}, if_none_match=True)


@pytest.mark.asyncio
async def test_document_compare_and_swap(fs_storage):
    first = await fs_storage.put_document("share-abc12345.json", {"viewCount": 0})
    stored = await fs_storage.get_document("share-abc12345.json")
    assert stored.data == {"viewCount": 0}
    assert stored.etag == first

    second = await fs_storage.put_document("share-abc12345.json", {"viewCount": 1}, if_match=first)
    assert second != first

    with pytest.raises(PreconditionFailedError):
        await fs_storage.put_document("share-abc12345.json", {"viewCount": 2}, if_match=first)

    assert (await fs_storage.get_document("share-abc12345.json")).data == {"viewCount": 1}


@pytest.mark.asyncio
async def test_if_match_on_missing_document_fails(fs_storage):
    assert await fs_storage.get_document("share-nothere.json") is None
    with pytest.raises(PreconditionFailedError):
        await fs_storage.put_document("share-nothere.json", {"viewCount": 1}, if_match="stale")
