"""
Task Manager - Configuration Settings
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional


STORE_BACKENDS = ("sqlite", "memory")


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


@dataclass
class DatabaseSettings:
    """Database configuration."""
    path: Path = field(default_factory=lambda: Path("data/tasks.sqlite3"))
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


@dataclass
class StoreSettings:
    """Task store backend selection."""
    backend: str = "sqlite"


@dataclass
class ApiSettings:
    """HTTP API configuration."""
    host: str = "0.0.0.0"
    port: int = 8000
    request_timeout_seconds: float = 10.0
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class LogSettings:
    """Logging configuration."""
    level: str = "INFO"
    json: bool = True
    file: Optional[str] = None


@dataclass
class Settings:
    """Main settings container."""
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    api: ApiSettings = field(default_factory=ApiSettings)
    log: LogSettings = field(default_factory=LogSettings)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from. Defaults to os.environ.

        Raises:
            ValueError: On malformed or unsupported values.
        """
        if env is None:
            env = os.environ

        debug = env.get("APP_ENV", "").lower() in ("development", "dev")

        database = DatabaseSettings(
            path=Path(env.get("TASKS_DATABASE_PATH") or "data/tasks.sqlite3"),
            wal_mode=_env_bool(env.get("TASKS_DATABASE_WAL"), True),
            busy_timeout_ms=_env_int(env, "TASKS_DATABASE_BUSY_TIMEOUT_MS", 5000),
        )

        backend = (env.get("TASKS_STORE_BACKEND") or "sqlite").strip().lower()
        if backend not in STORE_BACKENDS:
            raise ValueError(
                f"TASKS_STORE_BACKEND must be one of {STORE_BACKENDS}, got {backend!r}"
            )

        port = _env_int(env, "API_PORT", _env_int(env, "PORT", 8000))
        timeout_raw = env.get("API_REQUEST_TIMEOUT_SECONDS")
        try:
            timeout = float(timeout_raw) if timeout_raw else 10.0
        except ValueError:
            raise ValueError(
                f"API_REQUEST_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}"
            ) from None

        origins_raw = env.get("API_CORS_ORIGINS") or "*"
        origins = [o.strip() for o in origins_raw.split(",") if o.strip()]

        api = ApiSettings(
            host=env.get("API_HOST") or "0.0.0.0",
            port=port,
            request_timeout_seconds=timeout,
            cors_origins=origins,
        )

        log = LogSettings(
            level=(env.get("LOG_LEVEL") or ("DEBUG" if debug else "INFO")).upper(),
            json=_env_bool(env.get("LOG_JSON"), not debug),
            file=env.get("LOG_FILE") or None,
        )

        return cls(database=database, store=StoreSettings(backend=backend), api=api, log=log)


# Global settings instance
settings = Settings.from_env()
