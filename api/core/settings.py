"""
Environment-driven settings.

Values are read on every call so tests (and operators) can change the
environment without re-importing modules. `load_env_file()` is called once
by the entrypoint to pull in a local `.env`.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

DEFAULT_PORT = 3000
DEFAULT_DATABASE_NAME = "band_registry"


class ConfigError(RuntimeError):
    pass


def load_env_file() -> None:
    # Real environment wins over .env entries.
    load_dotenv(override=False)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def require_env(name: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise ConfigError(f"Missing env var: {name}")
    return value


def mongodb_uri() -> str:
    return require_env("MONGODB_URI")


def database_name() -> str:
    return os.environ.get("MONGODB_DB", DEFAULT_DATABASE_NAME).strip() or DEFAULT_DATABASE_NAME


def server_selection_timeout_ms() -> int:
    return _env_int("MONGODB_SERVER_SELECTION_TIMEOUT_MS", 5000)


def http_host() -> str:
    return os.environ.get("HOST", "0.0.0.0").strip() or "0.0.0.0"


def http_port() -> int:
    return _env_int("PORT", DEFAULT_PORT)


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").strip() or "INFO"


def shutdown_grace_s() -> float:
    return max(_env_int("SHUTDOWN_GRACE_MS", 50), 0) / 1000.0


def shutdown_timeout_s() -> float:
    return _env_float("SHUTDOWN_TIMEOUT_S", 10.0)


def people_api_enabled() -> bool:
    return _env_bool("PEOPLE_API_ENABLED", False)
