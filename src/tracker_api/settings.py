from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - APP_ENV: 'production' (default) or 'development'; development exposes internal error details
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/todos.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: root log level name (default: INFO)
    - TOKEN_TTL_MINUTES: lifetime of issued bearer tokens (default: 10080, one week)
    - PASSWORD_HASH_ITERATIONS: PBKDF2 rounds used for password hashing (default: 260000)
    - HISTORY_TIMEZONE: IANA zone defining the day boundary for history buckets (default: UTC)
    """

    app_env: str = "production"
    persistence_backend: str = "memory"
    sqlite_db_path: str = "./data/todos.db"
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    token_ttl_minutes: int = 10080
    password_hash_iterations: int = 260_000
    history_timezone: str = "UTC"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int, minimum: int = 1) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        # Star will be handled in main via allow_origins=["*"]
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _is_known_timezone(name: str) -> bool:
    if name.upper() == "UTC":
        return True
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False
    return True


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    app_env = _get_env("APP_ENV", "production").strip().lower()
    if app_env not in {"production", "development"}:
        app_env = "production"

    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        # Fallback to memory if unsupported
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/todos.db").strip()
    origins = _parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*"))

    log_level = _get_env("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in _LOG_LEVELS:
        log_level = "INFO"

    history_tz = _get_env("HISTORY_TIMEZONE", "UTC").strip() or "UTC"
    if not _is_known_timezone(history_tz):
        history_tz = "UTC"

    return Settings(
        app_env=app_env,
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        log_level=log_level,
        token_ttl_minutes=_parse_int(_get_env("TOKEN_TTL_MINUTES", "10080"), 10080),
        password_hash_iterations=_parse_int(_get_env("PASSWORD_HASH_ITERATIONS", "260000"), 260_000),
        history_timezone=history_tz,
    )
