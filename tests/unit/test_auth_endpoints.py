"""Unit tests for auth API endpoints.

Tests /auth/register, /auth/login, /auth/refresh, /auth/logout, /auth/me
and /health using FastAPI TestClient over the in-memory credential store.
"""

from unittest.mock import AsyncMock, patch

import pytest

from authcore.exceptions import ConfigurationError

REGISTER_BODY = {
    "email": "a@x.com",
    "username": "alice",
    "password": "pw123",
    "first_name": "A",
    "last_name": "Lice",
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    """Create a TestClient whose lifespan builds a fresh in-memory store."""
    from fastapi.testclient import TestClient
    from authcore.main import app

    with TestClient(app) as tc:
        yield tc


def _register(client):
    response = client.post("/auth/register", json=REGISTER_BODY)
    assert response.status_code == 201
    return response.json()


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------

class TestRegister:
    def test_creates_account(self, client):
        body = _register(client)

        assert body["username"] == "alice"
        assert body["email"] == "a@x.com"
        assert body["roles"] == ["User"]
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == 900
        assert body["access_token"]
        assert body["refresh_token"]

    def test_duplicate_returns_409(self, client):
        _register(client)
        response = client.post("/auth/register", json={**REGISTER_BODY, "username": "alice2"})

        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_user"

    def test_invalid_body_returns_400(self, client):
        response = client.post("/auth/register", json={"email": "nope", "username": "al"})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_padded_username_too_short_returns_400(self, client):
        response = client.post("/auth/register", json={**REGISTER_BODY, "username": "  b  "})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_configuration_error_is_generic_500(self, client):
        with patch.object(
            client.app.state.auth_service,
            "register",
            AsyncMock(side_effect=ConfigurationError("Default role 'User' not found")),
        ):
            response = client.post("/auth/register", json=REGISTER_BODY)

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"
        assert "User" not in response.text


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------

class TestLogin:
    def test_success(self, client):
        registered = _register(client)
        response = client.post("/auth/login", json={"email": "a@x.com", "password": "pw123"})

        assert response.status_code == 200
        assert response.json()["user_id"] == registered["user_id"]

    def test_padded_email_logs_in_after_register(self, client):
        registered = client.post(
            "/auth/register", json={**REGISTER_BODY, "email": " a@x.com "}
        )
        response = client.post("/auth/login", json={"email": " a@x.com ", "password": "pw123"})

        assert registered.status_code == 201
        assert registered.json()["email"] == "a@x.com"
        assert response.status_code == 200
        assert response.json()["user_id"] == registered.json()["user_id"]

    def test_wrong_password_returns_401(self, client):
        _register(client)
        response = client.post("/auth/login", json={"email": "a@x.com", "password": "wrongpw"})

        assert response.status_code == 401
        assert response.json()["error"] == "invalid_credentials"
        assert response.headers["WWW-Authenticate"] == "Bearer"


# ---------------------------------------------------------------------------
# POST /auth/refresh
# ---------------------------------------------------------------------------

class TestRefresh:
    def test_rotates_token(self, client):
        registered = _register(client)

        first = client.post("/auth/refresh", json={"refresh_token": registered["refresh_token"]})
        replay = client.post("/auth/refresh", json={"refresh_token": registered["refresh_token"]})

        assert first.status_code == 200
        assert first.json()["refresh_token"] != registered["refresh_token"]
        assert replay.status_code == 401
        assert replay.json()["error"] == "invalid_refresh_token"

    def test_unknown_token_returns_401(self, client):
        response = client.post("/auth/refresh", json={"refresh_token": "bogus"})
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# POST /auth/logout and GET /auth/me
# ---------------------------------------------------------------------------

class TestLogout:
    def test_logout_revokes_refresh_tokens(self, client):
        registered = _register(client)

        response = client.post("/auth/logout", headers=_bearer(registered["access_token"]))
        refresh = client.post("/auth/refresh", json={"refresh_token": registered["refresh_token"]})

        assert response.status_code == 200
        assert refresh.status_code == 401

    def test_logout_requires_bearer(self, client):
        response = client.post("/auth/logout")
        assert response.status_code in (401, 403)

    def test_logout_rejects_bad_token(self, client):
        response = client.post("/auth/logout", headers=_bearer("not.a.jwt"))
        assert response.status_code == 401


class TestMe:
    def test_returns_principal(self, client):
        registered = _register(client)
        response = client.get("/auth/me", headers=_bearer(registered["access_token"]))

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == registered["user_id"]
        assert body["client_id"] == registered["user_id"]
        assert body["roles"] == ["User"]


class TestHealthAndCorrelation:
    def test_health(self, client):
        response = client.get("/health")
        assert response.json() == {"status": "ok", "credential_store": "memory"}

    def test_correlation_id_echoed(self, client):
        response = client.get("/health", headers={"X-Correlation-Id": "abc-123"})
        assert response.headers["X-Correlation-Id"] == "abc-123"
