from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import FakeClock, auth_headers, make_settings, register
from tracker_api.auth import IdentityProvider, hash_password, verify_password
from tracker_api.errors import AuthError, ValidationError
from tracker_api.main import create_app
from tracker_api.repositories import InMemoryUserRepository


class TestPasswordHashing:
    def test_round_trip(self):
        encoded = hash_password("secret123", 1000)
        assert encoded.startswith("pbkdf2_sha256$1000$")
        assert "secret123" not in encoded
        assert verify_password("secret123", encoded)
        assert not verify_password("secret124", encoded)

    def test_salts_differ(self):
        assert hash_password("same", 1000) != hash_password("same", 1000)

    @pytest.mark.parametrize("encoded", ["", "plain", "md5$1$salt$abc"])
    def test_malformed_hash_never_verifies(self, encoded):
        assert not verify_password("anything", encoded)


class TestIdentityProvider:
    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def identity(self, clock):
        return IdentityProvider(
            InMemoryUserRepository(clock=clock),
            token_ttl=timedelta(minutes=30),
            hash_iterations=1000,
            clock=clock,
        )

    def test_register_then_authenticate(self, identity):
        token, user = identity.register(" Ada ", "ada@example.com", "secret123")
        assert user["name"] == "Ada"
        assert identity.authenticate(token)["id"] == user["id"]

    def test_register_validation(self, identity):
        with pytest.raises(ValidationError):
            identity.register("   ", "ada@example.com", "secret123")
        with pytest.raises(ValidationError):
            identity.register("Ada", "ada@example.com", "short")
        identity.register("Ada", "ada@example.com", "secret123")
        with pytest.raises(ValidationError):
            identity.register("Ada Again", "ada@example.com", "secret123")

    def test_login_failures_share_one_message(self, identity):
        identity.register("Ada", "ada@example.com", "secret123")
        with pytest.raises(AuthError) as wrong_password:
            identity.login("ada@example.com", "wrong-password")
        with pytest.raises(AuthError) as unknown_email:
            identity.login("nobody@example.com", "secret123")
        assert wrong_password.value.message == unknown_email.value.message

    def test_token_expires(self, identity, clock):
        token, _ = identity.register("Ada", "ada@example.com", "secret123")
        clock.advance(minutes=30)
        identity.authenticate(token)
        clock.advance(seconds=1)
        with pytest.raises(AuthError, match="expired"):
            identity.authenticate(token)
        # expired sessions are removed, so the token is now simply unknown
        with pytest.raises(AuthError, match="Invalid"):
            identity.authenticate(token)

    def test_logout_revokes(self, identity):
        token, _ = identity.register("Ada", "ada@example.com", "secret123")
        identity.logout(token)
        with pytest.raises(AuthError):
            identity.authenticate(token)

    def test_missing_token(self, identity):
        with pytest.raises(AuthError, match="Not authenticated"):
            identity.authenticate(None)


class TestUsersApi:
    def test_register_returns_token_and_public_profile(self, client):
        body = register(client, email="Ada@Example.com")
        assert isinstance(body["token"], str) and body["token"]
        assert body["user"]["email"] == "ada@example.com"
        assert body["user"]["name"] == "Ada"
        assert set(body["user"]) == {"id", "name", "email", "createdAt"}

    def test_register_duplicate_email_is_400(self, client):
        register(client)
        res = client.post(
            "/users/register",
            json={"name": "Ada", "email": "ADA@example.com", "password": "secret123"},
        )
        assert res.status_code == 400
        assert res.json() == {"error": "ValidationError", "message": "Email already registered"}

    def test_register_invalid_email_is_400(self, client):
        res = client.post(
            "/users/register", json={"name": "Ada", "email": "not-an-email", "password": "secret123"}
        )
        assert res.status_code == 400
        assert res.json()["message"] == "Request validation failed"

    def test_login(self, client):
        register(client)
        res = client.post("/users/login", json={"email": "ada@example.com", "password": "secret123"})
        assert res.status_code == 200
        token = res.json()["token"]
        me = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200

        bad = client.post("/users/login", json={"email": "ada@example.com", "password": "nope-nope"})
        assert bad.status_code == 401
        assert bad.json() == {"error": "AuthError", "message": "Invalid email or password"}

    def test_logout(self, client):
        headers = auth_headers(client)
        assert client.post("/users/logout", headers=headers).status_code == 204
        assert client.get("/users/me", headers=headers).status_code == 401
        assert client.post("/users/logout", headers=headers).status_code == 401

    def test_expired_token_is_401(self):
        clock = FakeClock()
        client = TestClient(create_app(make_settings(token_ttl_minutes=5), clock=clock))
        headers = auth_headers(client)
        clock.advance(minutes=6)
        res = client.get("/todos", headers=headers)
        assert res.status_code == 401
        assert res.json()["message"] == "Authentication token expired"


class TestProfileStats:
    def test_zero_todos(self, client):
        headers = auth_headers(client)
        res = client.get("/users/me", headers=headers)
        assert res.status_code == 200
        body = res.json()
        assert body["user"]["name"] == "Ada"
        assert "passwordHash" not in body["user"] and "password_hash" not in body["user"]
        assert body["stats"] == {"totalTodos": 0, "completedTodos": 0, "pendingTodos": 0}

    def test_three_todos_one_completed(self, client):
        headers = auth_headers(client)
        ids = [
            client.post("/todos", json={"text": t}, headers=headers).json()["id"]
            for t in ["one", "two", "three"]
        ]
        client.put(f"/todos/{ids[0]}", json={"completed": True}, headers=headers)

        other = auth_headers(client, email="other@example.com", name="Other")
        client.post("/todos", json={"text": "not mine"}, headers=other)

        stats = client.get("/users/me", headers=headers).json()["stats"]
        assert stats == {"totalTodos": 3, "completedTodos": 1, "pendingTodos": 2}

    def test_requires_auth(self, client):
        res = client.get("/users/me")
        assert res.status_code == 401
        assert res.json()["error"] == "AuthError"
