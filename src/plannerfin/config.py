"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from sqlalchemy.pool import StaticPool

load_dotenv()

DEMO_DATABASE_URL = "sqlite:///demo.invalid"


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _sqlite_options(url: str) -> dict[str, Any]:
    """Engine kwargs for SQLite URLs; other dialects get no extras."""

    if not url.startswith("sqlite"):
        return {}
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url in {"sqlite://", "sqlite:///:memory:"}:
        # Worker threads must all see the same in-memory database.
        options["poolclass"] = StaticPool
    return options


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "PlannerFin"
    LOCAL_DB_FILENAME = "plannerfin-local.db"
    STORAGE_PREFIX = "plannerfinUserData_"
    SETTINGS_KEY = "plannerfinSettings"
    BACKUP_META_KEY = "plannerfinBackupMeta"
    AUTH_USER_KEY = "plannerfinUser"
    SCHEMA_VERSION = 1
    DEFAULT_SESSION_TTL = 300

    def __init__(self) -> None:
        self.DEV_MODE = _env_bool("PLANNERFIN_DEV_MODE", default=True)
        self.DATA_DIR = self._resolve_data_dir()
        self.DATABASE_URL = (os.getenv("PLANNERFIN_DATABASE_URL") or "").strip()
        self.LOCAL_DB_URL = os.getenv("PLANNERFIN_LOCAL_DB_URL") or self._build_local_url()
        self.SESSION_TTL_SECONDS = _env_int("PLANNERFIN_SESSION_TTL", self.DEFAULT_SESSION_TTL)
        if self.SESSION_TTL_SECONDS < 0:
            raise ValueError("PLANNERFIN_SESSION_TTL cannot be negative.")

    @property
    def using_demo_credentials(self) -> bool:
        """True when no real hosted store is configured."""

        return not self.DATABASE_URL or self.DATABASE_URL == DEMO_DATABASE_URL

    @property
    def storage_namespace(self) -> tuple[str, ...]:
        """Key prefixes owned by this application in local storage."""

        return (
            self.STORAGE_PREFIX,
            self.SETTINGS_KEY,
            self.BACKUP_META_KEY,
            self.AUTH_USER_KEY,
        )

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the local store and logs live."""

        data_root = os.getenv("PLANNERFIN_DATA_DIR", "instance")
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            local_app_data = os.getenv("LOCALAPPDATA") or (Path.home() / ".local" / "share")
            fallback_path = Path(local_app_data).expanduser() / self.APP_NAME
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    def _build_local_url(self) -> str:
        return f"sqlite:///{self.DATA_DIR / self.LOCAL_DB_FILENAME}"

    def remote_engine_options(self) -> dict[str, Any]:
        """Engine kwargs for the hosted store."""

        options = _sqlite_options(self.DATABASE_URL)
        options.setdefault("pool_pre_ping", True)
        return options

    def local_engine_options(self) -> dict[str, Any]:
        """Engine kwargs for the local key-value store."""

        return _sqlite_options(self.LOCAL_DB_URL)


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False
