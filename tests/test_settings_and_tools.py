import json

from fastapi.testclient import TestClient

from conftest import auth_headers
from tracker_api.generate_openapi import generate_openapi
from tracker_api.main import create_app
from tracker_api.settings import get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in [
            "APP_ENV",
            "PERSISTENCE_BACKEND",
            "SQLITE_DB_PATH",
            "CORS_ALLOW_ORIGINS",
            "LOG_LEVEL",
            "TOKEN_TTL_MINUTES",
            "PASSWORD_HASH_ITERATIONS",
            "HISTORY_TIMEZONE",
        ]:
            monkeypatch.delenv(name, raising=False)
        s = get_settings()
        assert s.app_env == "production"
        assert not s.is_development
        assert s.persistence_backend == "memory"
        assert s.sqlite_db_path == "./data/todos.db"
        assert s.cors_allow_origins == ["*"]
        assert s.log_level == "INFO"
        assert s.token_ttl_minutes == 10080
        assert s.password_hash_iterations == 260_000
        assert s.history_timezone == "UTC"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "Development")
        monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://localhost:5173, https://todo.example.com")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("TOKEN_TTL_MINUTES", "60")
        monkeypatch.setenv("HISTORY_TIMEZONE", "Europe/Berlin")
        s = get_settings()
        assert s.is_development
        assert s.persistence_backend == "sqlite"
        assert s.cors_allow_origins == ["http://localhost:5173", "https://todo.example.com"]
        assert s.log_level == "DEBUG"
        assert s.token_ttl_minutes == 60
        assert s.history_timezone == "Europe/Berlin"

    def test_unsupported_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("APP_ENV", "staging")
        monkeypatch.setenv("PERSISTENCE_BACKEND", "mongodb")
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        monkeypatch.setenv("TOKEN_TTL_MINUTES", "-5")
        monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", "many")
        monkeypatch.setenv("HISTORY_TIMEZONE", "Not/AZone")
        s = get_settings()
        assert s.app_env == "production"
        assert s.persistence_backend == "memory"
        assert s.log_level == "INFO"
        assert s.token_ttl_minutes == 10080
        assert s.password_hash_iterations == 260_000
        assert s.history_timezone == "UTC"

    def test_unknown_history_timezone_does_not_break_requests(self, monkeypatch):
        monkeypatch.setenv("HISTORY_TIMEZONE", "Not/AZone")
        monkeypatch.setenv("PASSWORD_HASH_ITERATIONS", "1000")
        client = TestClient(create_app(get_settings()))
        headers = auth_headers(client)
        res = client.get("/todos/history/byDate", headers=headers)
        assert res.status_code == 200
        assert res.json() == []


class TestOpenApiExport:
    def test_writes_schema_with_routes_and_tags(self, tmp_path):
        out = tmp_path / "interfaces" / "openapi.json"
        written = generate_openapi(str(out))
        assert written == str(out)

        schema = json.loads(out.read_text(encoding="utf-8"))
        assert "/todos" in schema["paths"]
        assert "/todos/history/byDate" in schema["paths"]
        assert "/users/me" in schema["paths"]
        assert {t["name"] for t in schema["tags"]} >= {"health", "users", "todos"}

    def test_wire_models_are_documented(self, tmp_path):
        out = tmp_path / "openapi.json"
        generate_openapi(str(out))
        components = json.loads(out.read_text(encoding="utf-8"))["components"]["schemas"]
        for name in ("HistoryItem", "HistoryBucket", "LoginRequest", "Stats", "ProfileOut"):
            model = components[name]
            assert "example" in model, name
            assert all("description" in prop for prop in model["properties"].values()), name
