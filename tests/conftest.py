from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from tracker_api.main import create_app
from tracker_api.settings import Settings


class FakeClock:
    """Deterministic clock. Frozen by default; tests move it with set() or advance()."""

    def __init__(self, start=None, step=timedelta(0)):
        self.now = start or datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        value = self.now
        self.now = self.now + self.step
        return value

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)

    def set(self, value):
        self.now = value


def make_settings(**overrides):
    # Low PBKDF2 iteration count keeps registration fast in tests
    values = {"password_hash_iterations": 1000}
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def client(settings):
    """Client for a fresh in-memory app using the real clock."""
    return TestClient(create_app(settings))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def clocked_client(clock):
    """
    Client for a fresh in-memory app whose timestamps come from `clock`.
    Tokens effectively never expire so tests can move the clock freely.
    """
    return TestClient(create_app(make_settings(token_ttl_minutes=10**8), clock=clock))


def register(client, email="ada@example.com", name="Ada", password="secret123"):
    res = client.post("/users/register", json={"name": name, "email": email, "password": password})
    assert res.status_code == 201, res.text
    return res.json()


def auth_headers(client, email="ada@example.com", name="Ada", password="secret123"):
    token = register(client, email=email, name=name, password=password)["token"]
    return {"Authorization": f"Bearer {token}"}


def parse_ts(value):
    # Pydantic serializes UTC datetimes with a trailing 'Z'
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
