"""File uploads and the development token endpoint."""

import os

from starlette.datastructures import UploadFile as StarletteUploadFile

from app.config import settings
from app.security import decode_user_id


async def test_upload_file_stores_record(client, space_and_owner, owner, auth_headers):
    space, _ = space_and_owner
    res = await client.post(
        f"/api/spaces/{space.id}/files",
        files={"file": ("Notes.TXT", b"hello", "text/plain")},
        headers=auth_headers(owner),
    )
    assert res.status_code == 200
    body = res.json()
    assert body["filename"] == "Notes.TXT"
    assert body["size"] == 5
    assert body["url"].startswith(settings.UPLOAD_URL_PREFIX)
    assert body["url"].endswith(".txt")
    stored = os.path.join(settings.UPLOAD_DIR, body["url"].rsplit("/", 1)[1])
    with open(stored, "rb") as f:
        assert f.read() == b"hello"


async def test_upload_too_large(client, space_and_owner, owner, auth_headers, monkeypatch):
    space, _ = space_and_owner
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 3)
    res = await client.post(
        f"/api/spaces/{space.id}/files",
        files={"file": ("big.bin", b"12345", "application/octet-stream")},
        headers=auth_headers(owner),
    )
    assert res.status_code == 422
    assert res.json()["errors"] == [{"attribute": "file", "message": "should be at most 3 byte(s)"}]


async def test_upload_reads_no_more_than_limit(client, space_and_owner, owner, auth_headers, monkeypatch):
    space, _ = space_and_owner
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 4)
    sizes = []
    original_read = StarletteUploadFile.read

    async def recording_read(self, size=-1):
        sizes.append(size)
        return await original_read(self, size)

    monkeypatch.setattr(StarletteUploadFile, "read", recording_read)
    res = await client.post(
        f"/api/spaces/{space.id}/files",
        files={"file": ("big.bin", b"x" * 1000, "application/octet-stream")},
        headers=auth_headers(owner),
    )
    assert res.status_code == 422
    assert sizes == [5]


async def test_upload_requires_membership(client, make_user, space_and_owner, auth_headers):
    space, _ = space_and_owner
    stranger = await make_user()
    res = await client.post(
        f"/api/spaces/{space.id}/files",
        files={"file": ("a.txt", b"a", "text/plain")},
        headers=auth_headers(stranger),
    )
    assert res.status_code == 404


async def test_token_creates_user_once(client):
    first = (await client.post("/api/auth/token", json={"email": "New@Example.com", "first_name": "Nia"})).json()
    second = (await client.post("/api/auth/token", json={"email": "new@example.com"})).json()
    assert first["user_id"] == second["user_id"]
    assert decode_user_id(first["access_token"]) == first["user_id"]


async def test_token_rejects_bad_email(client):
    res = await client.post("/api/auth/token", json={"email": "nope"})
    assert res.status_code == 422
    assert res.json()["errors"] == [{"attribute": "email", "message": "has invalid format"}]


async def test_root(client):
    assert (await client.get("/")).json() == {"message": "Level is running"}
