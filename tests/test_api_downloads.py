from datetime import timedelta
from urllib.parse import urlsplit

from vanish.core.hashing import hash_password


def _path(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}"


def test_describe_file(client, make_file):
    make_file(max_downloads=5, download_count=2)

    response = client.get("/api/download/12345678")

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "notes.txt"
    assert body["size"] == len(b"top secret bytes")
    assert body["requiresPassword"] is False
    assert body["downloadsRemaining"] == 3
    assert response.headers["cache-control"] == "no-store, private"
    assert response.headers["x-request-id"]


def test_describe_unlimited_file(client, make_file):
    make_file(max_downloads=-1)

    assert client.get("/api/download/12345678").json()["downloadsRemaining"] == "unlimited"


def test_single_use_download_flow(client, make_file, storage):
    make_file()

    grant = client.post("/api/download/12345678")
    assert grant.status_code == 200
    grant_body = grant.json()
    assert grant_body["downloadUrl"].startswith("http://testserver/api/download/12345678/file?token=")

    second = client.post("/api/download/12345678")
    assert second.status_code == 410
    assert second.json() == {"error": "Download limit reached"}

    download = client.get(_path(grant_body["downloadUrl"]))
    assert download.status_code == 200
    assert download.content == b"top secret bytes"
    assert download.headers["content-type"].startswith("text/plain")
    assert download.headers["content-disposition"] == "attachment; filename*=UTF-8''notes.txt"
    assert download.headers["cache-control"] == "no-store, private"

    replay = client.get(_path(grant_body["downloadUrl"]))
    assert replay.status_code == 404
    assert replay.json() == {"error": "Download link not found or already used"}

    assert storage.objects == {}
    assert client.get("/api/download/12345678").status_code == 404


def test_password_protected_download(client, make_file):
    make_file(password_hash=hash_password("hunter2"))

    assert client.get("/api/download/12345678").json()["requiresPassword"] is True

    missing = client.post("/api/download/12345678")
    assert missing.status_code == 401
    assert missing.json() == {"error": "Password required"}

    wrong = client.post("/api/download/12345678", json={"password": "nope"})
    assert wrong.status_code == 403
    assert wrong.json() == {"error": "Incorrect password"}

    right = client.post("/api/download/12345678", json={"password": "hunter2"})
    assert right.status_code == 200
    assert right.json()["token"]


def test_expired_file_is_gone(client, make_file, storage):
    make_file(expires_in=timedelta(minutes=-1))

    response = client.get("/api/download/12345678")

    assert response.status_code == 410
    assert response.json() == {"error": "File has expired"}
    assert storage.objects == {}


def test_error_statuses(client):
    assert client.get("/api/download/abc").status_code == 400
    assert client.get("/api/download/abc").json() == {"error": "Invalid code format"}
    assert client.get("/api/download/87654321").status_code == 404
    assert client.get("/api/download/87654321/file").status_code == 404
    assert client.get("/api/download/87654321/file?token=unknown").status_code == 404


def test_request_id_is_echoed(client):
    response = client.get("/api/download/87654321", headers={"X-Request-ID": "trace-42"})

    assert response.headers["x-request-id"] == "trace-42"
