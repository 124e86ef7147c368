from urllib.parse import urlsplit

from vanish.core.config import settings


def _init(client, **overrides):
    payload = {"filename": "report.txt", "size": 11, "mimeType": "text/plain", **overrides}
    return client.post("/api/upload", json=payload)


def test_upload_then_download(client):
    init = _init(client, maxDownloads=5, expiryMinutes=30)
    assert init.status_code == 200
    body = init.json()
    code = body["code"]
    assert len(code) == 8 and code.isdigit()
    assert body["uploadUrl"] == f"http://testserver/api/upload/{code}"
    assert init.headers["cache-control"] == "no-store, private"

    appended = client.put(f"/api/upload/{code}", content=b"hello world")
    assert appended.status_code == 200
    assert appended.json() == {"code": code, "received": 11}

    completed = client.post(f"/api/upload/{code}/complete")
    assert completed.status_code == 200
    assert completed.json()["name"] == "report.txt"
    assert completed.json()["maxDownloads"] == 5

    described = client.get(f"/api/download/{code}").json()
    assert described["downloadsRemaining"] == 5

    grant = client.post(f"/api/download/{code}").json()
    parts = urlsplit(grant["downloadUrl"])
    download = client.get(f"{parts.path}?{parts.query}")
    assert download.content == b"hello world"
    assert client.get(f"/api/download/{code}").json()["downloadsRemaining"] == 4


def test_upload_may_arrive_in_pieces(client):
    code = _init(client).json()["code"]

    client.put(f"/api/upload/{code}", content=b"hello ")
    assert client.put(f"/api/upload/{code}", content=b"world").json()["received"] == 11
    assert client.post(f"/api/upload/{code}/complete").status_code == 200


def test_rejected_uploads(client):
    disallowed = _init(client, mimeType="application/x-msdownload")
    assert disallowed.status_code == 400
    assert disallowed.json() == {"error": "File type is not allowed"}

    empty = _init(client, size=0)
    assert empty.json() == {"error": "Invalid file size"}

    malformed = client.post("/api/upload", json={"filename": "x.txt"})
    assert malformed.status_code == 400
    assert malformed.json() == {"error": "Invalid request body"}


def test_oversized_and_incomplete_uploads(client):
    code = _init(client, size=4).json()["code"]

    too_much = client.put(f"/api/upload/{code}", content=b"hello world")
    assert too_much.status_code == 400
    assert too_much.json() == {"error": "Upload exceeds declared file size"}

    other = _init(client).json()["code"]
    client.put(f"/api/upload/{other}", content=b"hello")
    incomplete = client.post(f"/api/upload/{other}/complete")
    assert incomplete.status_code == 400
    assert incomplete.json() == {"error": "Upload incomplete: received 5 of 11 bytes"}


def test_abort_upload(client, storage):
    code = _init(client).json()["code"]

    assert client.delete(f"/api/upload/{code}").status_code == 204
    assert client.delete(f"/api/upload/{code}").status_code == 204
    assert code not in storage.uploads

    missing = client.put(f"/api/upload/{code}", content=b"late")
    assert missing.status_code == 404
    assert missing.json() == {"error": "Upload session not found"}


def test_uploads_follow_the_feature_flag(client, monkeypatch):
    monkeypatch.setattr(settings, "DEAD_DROP_ENABLED", False)

    response = _init(client)

    assert response.status_code == 503
    assert response.json() == {"error": "File uploads are temporarily disabled"}


def test_long_filename_upload_completes(client):
    name = "報告書" * 30 + ".txt"
    code = _init(client, filename=name, size=3).json()["code"]

    client.put(f"/api/upload/{code}", content=b"abc")
    completed = client.post(f"/api/upload/{code}/complete")

    assert completed.status_code == 200
    assert completed.json()["name"] == name
