"""Integration tests for authentication flow.

Tests the complete auth flow including:
- Registration
- Login and account lockout
- Current user lookup
- Password change
- Logout
- Role gating on admin routes
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from newsadmin import app as app_module
from newsadmin.service.errors import TOKEN_REJECTED_MESSAGE
from newsadmin.service.runtime import get_runtime
from newsadmin.service.tokens import TokenCodec
from newsadmin.storage.common import USERS
from newsadmin.storage.models import utcnow


@pytest.fixture
def client():
    """Create a test client for the API."""
    return TestClient(app_module.app)


def _register(client, email="alice@example.com", password="secret1", **extra):
    payload = {"name": "Alice", "email": email, "password": password, **extra}
    return client.post("/api/auth/register", json=payload)


def _login(client, email="alice@example.com", password="secret1"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


class TestRegistration:
    def test_register_returns_token_and_user(self, client):
        response = _register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "User registered successfully"
        assert body["data"]["token"]
        assert body["data"]["user"]["email"] == "alice@example.com"
        assert body["data"]["user"]["role"] == "admin"

    def test_register_duplicate_email(self, client):
        _register(client)

        response = _register(client, email="ALICE@example.com")

        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_register_short_password(self, client):
        response = _register(client, password="abc")

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "password"

    def test_register_invalid_email(self, client):
        response = _register(client, email="not-an-email")
        assert response.status_code == 400

    def test_register_rejects_super_admin_role(self, client):
        response = _register(client, role="super_admin")
        assert response.status_code == 400


class TestLogin:
    def test_login_success(self, client):
        registered = _register(client).json()["data"]["user"]

        response = _login(client)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["id"] == registered["id"]
        assert data["user"]["last_login"] is not None
        claims = get_runtime().auth.tokens.verify(data["token"])
        assert claims.subject_id == registered["id"]

    def test_login_wrong_password(self, client):
        _register(client)

        response = _login(client, password="wrong-password")

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_login_unknown_email(self, client):
        response = _login(client, email="ghost@example.com")

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_plain_user_is_forbidden(self, client):
        _register(client, role="user")

        response = _login(client)

        assert response.status_code == 403

    def test_lockout_after_five_failures(self, client):
        """alice registers, fails five times, then the correct password is refused."""
        assert _register(client).status_code == 201

        for _ in range(5):
            assert _login(client, password="wrong-password").status_code == 401

        response = _login(client)

        assert response.status_code == 423
        assert "Try again in" in response.json()["message"]

    def test_inactive_account(self, client):
        user_id = _register(client).json()["data"]["user"]["id"]
        get_runtime().store.update_user(user_id, status="inactive")

        response = _login(client)

        assert response.status_code == 403


class TestSession:
    def test_me_requires_token(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["message"] == TOKEN_REJECTED_MESSAGE

    def test_me_with_invalid_token(self, client):
        response = client.get("/api/auth/me", headers=_auth("garbage"))
        assert response.status_code == 401

    def test_token_failures_share_one_message(self, client):
        runtime = get_runtime()
        data = _register(client).json()["data"]
        deleted = _register(client, email="gone@example.com").json()["data"]
        runtime.store.delete(USERS, deleted["user"]["id"])
        settings = runtime.settings
        past = TokenCodec(
            settings.jwt_secret,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            clock=lambda: utcnow() - timedelta(days=30),
        )
        expired = past.issue(data["user"]["id"], "admin")

        responses = [
            client.get("/api/auth/me"),
            client.get("/api/auth/me", headers=_auth("garbage")),
            client.get("/api/auth/me", headers=_auth(expired)),
            client.get("/api/auth/me", headers=_auth(deleted["token"])),
        ]

        assert [r.status_code for r in responses] == [401] * 4
        assert {r.json()["message"] for r in responses} == {TOKEN_REJECTED_MESSAGE}
        assert all("errors" not in r.json() for r in responses)

    def test_non_ascii_signature_is_rejected(self, client):
        token = _register(client).json()["data"]["token"]
        header, payload, _ = token.split(".")
        value = f"Bearer {header}.{payload}.ééé".encode("latin-1")

        response = client.get("/api/auth/me", headers={"Authorization": value})

        assert response.status_code == 401
        assert response.json()["message"] == TOKEN_REJECTED_MESSAGE

    def test_me_returns_profile_and_touches_activity(self, client):
        token = _register(client).json()["data"]["token"]

        response = client.get("/api/auth/me", headers=_auth(token))

        assert response.status_code == 200
        user = response.json()["data"]["user"]
        assert user["email"] == "alice@example.com"
        assert user["last_active_at"] is not None
        assert "password_hash" not in user

    def test_change_password(self, client):
        token = _register(client).json()["data"]["token"]

        response = client.post(
            "/api/auth/change-password",
            json={"oldPassword": "secret1", "newPassword": "secret2"},
            headers=_auth(token),
        )

        assert response.status_code == 200
        assert _login(client, password="secret2").status_code == 200

    def test_change_password_wrong_current(self, client):
        token = _register(client).json()["data"]["token"]

        response = client.post(
            "/api/auth/change-password",
            json={"oldPassword": "nope", "newPassword": "secret2"},
            headers=_auth(token),
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Current password is incorrect"

    def test_logout(self, client):
        token = _register(client).json()["data"]["token"]

        response = client.post("/api/auth/logout", headers=_auth(token))

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logout successful"}

    def test_correlation_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"


class TestRoleGating:
    def test_user_token_cannot_reach_admin_routes(self, client):
        token = _register(client, role="user").json()["data"]["token"]

        response = client.get("/api/news", headers=_auth(token))

        assert response.status_code == 403
        assert response.json()["message"] == "Access denied. Admin privileges required."

    def test_guest_token_cannot_reach_admin_routes(self, client):
        token = get_runtime().auth.tokens.issue_guest("guest-1")

        response = client.get("/api/admin/dashboard", headers=_auth(token))

        assert response.status_code == 403

    def test_role_change_requires_super_admin(self, client):
        admin_token = _register(client).json()["data"]["token"]
        target = _register(client, email="bob@example.com", role="user").json()["data"]["user"]

        response = client.put(
            f"/api/admin/users/{target['id']}/role",
            json={"role": "admin"},
            headers=_auth(admin_token),
        )

        assert response.status_code == 403

    def test_super_admin_can_change_role(self, client):
        runtime = get_runtime()
        boss = _register(client, email="boss@example.com").json()["data"]["user"]
        runtime.store.update_user(boss["id"], role="super_admin")
        token = _login(client, email="boss@example.com").json()["data"]["token"]
        target = _register(client, email="bob@example.com", role="user").json()["data"]["user"]

        response = client.put(
            f"/api/admin/users/{target['id']}/role",
            json={"role": "admin"},
            headers=_auth(token),
        )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["role"] == "admin"


class TestServiceRoutes:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "healthy"

    def test_index(self, client):
        body = client.get("/").json()

        assert body["success"] is True
        assert body["data"]["endpoints"]["news"] == "/api/news"
        assert body["data"]["caller"] is None

    def test_index_reports_caller(self, client):
        data = _register(client).json()["data"]

        body = client.get("/", headers=_auth(data["token"])).json()

        assert body["data"]["caller"] == {"id": data["user"]["id"], "role": "admin"}

    def test_index_ignores_bad_token(self, client):
        response = client.get("/", headers=_auth("garbage"))

        assert response.status_code == 200
        assert response.json()["data"]["caller"] is None
