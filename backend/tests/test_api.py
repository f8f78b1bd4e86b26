"""API tests with TestClient: health, auth, workspaces, file upload/read/list/delete, errors."""

import asyncio
import base64
import uuid

import pytest
from fastapi.testclient import TestClient

from notesync.db.session import get_session
from notesync.files.content_store import compute_hash
from notesync.limiter import limiter
from notesync.main import app
from notesync.workspaces.models import Workspace


@pytest.fixture
def client():
    """TestClient for the FastAPI app. Use as context manager so lifespan runs (init_db, admin bootstrap)."""
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True


def _login(client: TestClient, email: str = "test@example.com", password: str = "testpass123") -> dict:
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def _create_workspace(client: TestClient, headers: dict, name: str = "Notes") -> str:
    r = client.post("/api/workspaces", json={"name": name}, headers=headers)
    assert r.status_code == 201
    return r.json()["id"]


def _new_user(client: TestClient, admin_headers: dict) -> dict:
    """Create a free-tier user as admin and return auth headers for them."""
    email = f"api-{uuid.uuid4().hex[:10]}@example.com"
    r = client.post("/api/users", json={"email": email}, headers=admin_headers)
    assert r.status_code == 201
    return _login(client, email, r.json()["temp_password"])


def _upload(client: TestClient, headers: dict, workspace_id: str, path: str, content: bytes, **params):
    return client.post(
        "/api/files/upload",
        params={"workspace_id": workspace_id, "path": path, **params},
        content=content,
        headers=headers,
    )


def test_health(client: TestClient) -> None:
    """GET /health returns 200 and status ok."""
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "service": "notesync"}


def test_login_success(client: TestClient) -> None:
    """POST /api/auth/login with bootstrap admin returns tokens."""
    r = client.post(
        "/api/auth/login",
        json={"email": "test@example.com", "password": "testpass123"},
    )
    assert r.status_code == 200
    data = r.json()
    assert "access_token" in data
    assert "refresh_token" in data
    assert data.get("token_type") == "bearer"
    assert data.get("expires_in") > 0


def test_login_invalid_password(client: TestClient) -> None:
    """POST /api/auth/login with wrong password returns 401."""
    r = client.post(
        "/api/auth/login",
        json={"email": "test@example.com", "password": "wrong"},
    )
    assert r.status_code == 401
    assert "Invalid" in (r.json().get("detail") or "")


def test_refresh_returns_new_tokens(client: TestClient) -> None:
    login = client.post(
        "/api/auth/login",
        json={"email": "test@example.com", "password": "testpass123"},
    ).json()
    r = client.post("/api/auth/refresh", json={"refresh_token": login["refresh_token"]})
    assert r.status_code == 200
    assert "access_token" in r.json()
    bad = client.post("/api/auth/refresh", json={"refresh_token": login["access_token"]})
    assert bad.status_code == 401


def test_me_requires_auth(client: TestClient) -> None:
    """GET /api/users/me without Bearer returns 401."""
    r = client.get("/api/users/me")
    assert r.status_code == 401


def test_me_with_token(client: TestClient) -> None:
    """GET /api/users/me with valid token returns user."""
    r = client.get("/api/users/me", headers=_login(client))
    assert r.status_code == 200
    data = r.json()
    assert data["email"] == "test@example.com"
    assert data["is_admin"] is True
    assert data["tier"] == "enterprise"
    assert "password" not in data
    assert "password_hash" not in data


def test_non_admin_cannot_create_users(client: TestClient) -> None:
    user_headers = _new_user(client, _login(client))
    r = client.post("/api/users", json={"email": "x@example.com"}, headers=user_headers)
    assert r.status_code == 403


def test_workspace_create_list_get(client: TestClient) -> None:
    headers = _login(client)
    ws_id = _create_workspace(client, headers, "Journal")
    r = client.get(f"/api/workspaces/{ws_id}", headers=headers)
    assert r.status_code == 200
    assert r.json()["name"] == "Journal"
    assert r.json()["storage_used_bytes"] == 0
    listing = client.get("/api/workspaces", headers=headers).json()
    assert ws_id in [w["id"] for w in listing["workspaces"]]
    assert listing["count"] == len(listing["workspaces"])


def test_free_tier_second_workspace_forbidden(client: TestClient) -> None:
    headers = _new_user(client, _login(client))
    _create_workspace(client, headers, "only")
    r = client.post("/api/workspaces", json={"name": "second"}, headers=headers)
    assert r.status_code == 403
    assert r.json()["tier"] == "free"


def test_upload_get_content_download_list_delete(client: TestClient) -> None:
    """Full file lifecycle over HTTP."""
    headers = _login(client)
    ws_id = _create_workspace(client, headers)
    body = "# Grüße\n\nhello world\n".encode("utf-8")

    r = _upload(client, headers, ws_id, "notes/greet.md", body, client_id="laptop")
    assert r.status_code == 201
    info = r.json()
    assert info["file_path"] == "notes/greet.md"
    assert info["size_bytes"] == len(body)
    assert info["content_hash"] == compute_hash(body)
    assert info["mime_type"] == "text/markdown"
    assert "content" not in info

    r = client.get(f"/api/files/{ws_id}/notes/greet.md", headers=headers)
    assert r.status_code == 200
    assert r.json()["id"] == info["id"]
    assert "content" not in r.json()

    r = client.get(f"/api/files/{ws_id}/notes/greet.md", params={"content": "true"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["content_encoding"] == "base64"
    assert base64.b64decode(r.json()["content"]) == body

    r = client.get(f"/api/files/{ws_id}/notes/greet.md", params={"download": "true"}, headers=headers)
    assert r.status_code == 200
    assert r.content == body
    assert r.headers["content-type"].startswith("text/markdown")
    assert "greet.md" in r.headers["content-disposition"]
    assert r.headers["etag"] == f'"{compute_hash(body)}"'
    assert "last-modified" in r.headers

    listing = client.get(f"/api/workspaces/{ws_id}/files", headers=headers).json()
    assert listing["count"] == 1
    assert listing["files"][0]["file_path"] == "notes/greet.md"

    storage = client.get(f"/api/workspaces/{ws_id}/storage", headers=headers).json()
    assert storage["storage_used_bytes"] == len(body)
    assert storage["file_count"] == 1

    r = client.delete(f"/api/files/{ws_id}/notes/greet.md", headers=headers)
    assert r.status_code == 204
    r = client.get(f"/api/files/{ws_id}/notes/greet.md", headers=headers)
    assert r.status_code == 404
    storage = client.get(f"/api/workspaces/{ws_id}/storage", headers=headers).json()
    assert storage["storage_used_bytes"] == 0

    ops = client.get(f"/api/workspaces/{ws_id}/sync-operations", headers=headers).json()
    assert sorted(op["operation_type"] for op in ops) == ["delete", "upload"]
    assert all(op["status"] == "success" for op in ops)


def test_versions_and_metadata_endpoints(client: TestClient) -> None:
    headers = _login(client)
    ws_id = _create_workspace(client, headers)
    _upload(client, headers, ws_id, "a.md", b"X")
    _upload(client, headers, ws_id, "a.md", b"XY")
    r = client.get(f"/api/workspaces/{ws_id}/files/versions", params={"path": "a.md"}, headers=headers)
    assert r.status_code == 200
    assert [v["version_number"] for v in r.json()] == [2, 1]
    # Background extraction is off in tests
    r = client.get(f"/api/workspaces/{ws_id}/files/metadata", params={"path": "a.md"}, headers=headers)
    assert r.status_code == 200
    assert r.json() is None


def test_other_users_workspace_is_not_found(client: TestClient) -> None:
    """A foreign workspace looks exactly like a missing one."""
    admin = _login(client)
    ws_id = _create_workspace(client, admin)
    _upload(client, admin, ws_id, "private.md", b"secret")
    intruder = _new_user(client, admin)

    foreign = client.get(f"/api/workspaces/{ws_id}", headers=intruder)
    missing = client.get(f"/api/workspaces/{uuid.uuid4()}", headers=intruder)
    assert foreign.status_code == 404
    assert missing.status_code == 404
    assert foreign.json() == missing.json()

    assert client.get(f"/api/files/{ws_id}/private.md", headers=intruder).status_code == 404
    assert _upload(client, intruder, ws_id, "x.md", b"x").status_code == 404
    assert client.delete(f"/api/files/{ws_id}/private.md", headers=intruder).status_code == 404
    assert client.get(f"/api/workspaces/{ws_id}/files", headers=intruder).status_code == 404


def test_upload_over_quota_returns_413(client: TestClient) -> None:
    headers = _login(client)
    ws_id = _create_workspace(client, headers)

    async def _shrink_limit():
        async with get_session() as session:
            workspace = await session.get(Workspace, uuid.UUID(ws_id))
            workspace.storage_limit_bytes = 10

    asyncio.run(_shrink_limit())
    r = _upload(client, headers, ws_id, "big.md", b"x" * 20)
    assert r.status_code == 413
    data = r.json()
    assert data["needed"] == 20
    assert data["limit"] == 10
    assert "storage limit exceeded" in data["detail"]
    assert client.get(f"/api/workspaces/{ws_id}/files", headers=headers).json()["count"] == 0


def test_upload_body_too_large_returns_413(client: TestClient, monkeypatch) -> None:
    headers = _login(client)
    ws_id = _create_workspace(client, headers)
    monkeypatch.setenv("NOTESYNC_MAX_UPLOAD_BYTES", "16")
    r = _upload(client, headers, ws_id, "big.md", b"x" * 17)
    assert r.status_code == 413


def test_upload_invalid_path_returns_400(client: TestClient) -> None:
    headers = _login(client)
    ws_id = _create_workspace(client, headers)
    r = _upload(client, headers, ws_id, "../etc/passwd", b"x")
    assert r.status_code == 400
    assert "Unsafe path segment" in r.json()["detail"]


def test_delete_missing_file_returns_404(client: TestClient) -> None:
    headers = _login(client)
    ws_id = _create_workspace(client, headers)
    r = client.delete(f"/api/files/{ws_id}/nope.md", headers=headers)
    assert r.status_code == 404


def test_reconcile_storage(client: TestClient) -> None:
    headers = _login(client)
    ws_id = _create_workspace(client, headers)
    _upload(client, headers, ws_id, "a.txt", b"12345")
    r = client.post(f"/api/workspaces/{ws_id}/storage/reconcile", headers=headers)
    assert r.status_code == 200
    assert r.json()["storage_used_bytes"] == 5
    assert r.json()["actual_storage_used"] == 5


def test_security_headers(client: TestClient) -> None:
    r = client.get("/health")
    assert r.headers["x-content-type-options"] == "nosniff"
    assert r.headers["x-frame-options"] == "DENY"


def test_change_password_then_login(client: TestClient) -> None:
    """Password change is persisted: the new password logs in, a wrong current one is refused."""
    email = f"pw-{uuid.uuid4().hex[:10]}@example.com"
    created = client.post("/api/users", json={"email": email}, headers=_login(client)).json()
    headers = _login(client, email, created["temp_password"])
    r = client.post(
        "/api/auth/change-password",
        json={"current_password": "wrong-password", "new_password": "another-secret-1"},
        headers=headers,
    )
    assert r.status_code == 401
    r = client.post(
        "/api/auth/change-password",
        json={"current_password": created["temp_password"], "new_password": "another-secret-1"},
        headers=headers,
    )
    assert r.status_code == 200
    _login(client, email, "another-secret-1")
