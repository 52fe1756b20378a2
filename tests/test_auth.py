"""
Tests for the login endpoint and the health check.

These tests verify:
  - Successful login returns username, token, zones and role
  - The returned token decodes to the stored username and role
  - Wrong password and unknown username both return 401 with one message
  - Malformed bodies are rejected with 400 (not FastAPI's default 422)
  - A token signing failure at login returns 500 with a generic message
"""

from jose.exceptions import JWSError

from zoneguard import security
from zoneguard.models.user import Role


class TestLogin:
    """Tests for POST /auth/login."""

    async def test_login_success(self, client, user_service, token_issuer, admin_identity):
        await user_service.create_user(
            admin_identity, username="alice", password="pw1", role=Role.ZONE_ADMIN,
            zones=["z1", "z2"],
        )

        response = await client.post(
            "/auth/login",
            json={"username": "alice", "password": "pw1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"username", "token", "zones", "role"}
        assert data["username"] == "alice"
        assert data["zones"] == ["z1", "z2"]
        assert data["role"] == "zone_admin"

        identity = token_issuer.validate_token(data["token"])
        assert identity.username == "alice"
        assert identity.role is Role.ZONE_ADMIN

    async def test_bootstrap_admin_can_log_in(self, client, user_service):
        await user_service.ensure_bootstrap_admin("root", "RootPass123!")

        response = await client.post(
            "/auth/login",
            json={"username": "root", "password": "RootPass123!"},
        )

        assert response.status_code == 200
        assert response.json()["role"] == "admin"
        assert response.json()["zones"] == []

    async def test_login_wrong_password(self, client, user_service, admin_identity):
        await user_service.create_user(admin_identity, "alice", "pw1", Role.ADMIN)

        response = await client.post(
            "/auth/login",
            json={"username": "alice", "password": "wrong"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"

    async def test_login_unknown_user(self, client):
        """Must be indistinguishable from the wrong-password case."""
        response = await client.post(
            "/auth/login",
            json={"username": "nobody", "password": "pw1"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"

    async def test_unknown_user_and_wrong_password_same_body(
        self, client, user_service, admin_identity
    ):
        await user_service.create_user(admin_identity, "alice", "pw1", Role.ADMIN)

        wrong = await client.post("/auth/login", json={"username": "alice", "password": "x"})
        unknown = await client.post("/auth/login", json={"username": "ghost", "password": "x"})

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()

    async def test_login_missing_fields(self, client):
        response = await client.post("/auth/login", json={"username": "alice"})
        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_input"

    async def test_login_not_json(self, client):
        response = await client.post(
            "/auth/login",
            content="username=alice&password=pw1",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    async def test_login_error_never_echoes_password(self, client):
        response = await client.post(
            "/auth/login",
            json={"username": "alice", "password": 12345},
        )
        assert response.status_code == 400
        assert "12345" not in response.text

    async def test_signing_failure_is_500(self, client, user_service, admin_identity, monkeypatch):
        await user_service.create_user(admin_identity, username="alice", password="pw1", role=Role.ADMIN)

        def broken_encode(*args, **kwargs):
            raise JWSError("signing backend unavailable")

        monkeypatch.setattr(security.jwt, "encode", broken_encode)

        response = await client.post(
            "/auth/login",
            json={"username": "alice", "password": "pw1"},
        )

        assert response.status_code == 500
        assert response.json() == {"detail": "unable to generate token", "error_type": "internal_error"}
        assert "signing backend" not in response.text


class TestHealth:

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
