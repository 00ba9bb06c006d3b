"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    """Read a positive integer from the environment, falling back to *default*."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    parsed = int(value)
    if parsed <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")
    return parsed


def _env_hour(name: str, default: int) -> int:
    """Read an hour of the day (0-23) from the environment."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    parsed = int(value)
    if not 0 <= parsed <= 23:
        raise ValueError(f"{name} must be an hour between 0 and 23, got {value!r}")
    return parsed


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "LeaseKeeper"
    DB_FILENAME = "leasekeeper.db"
    # Upper bound on document writes committed together.
    MAX_BATCH_SIZE = 500

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("LEASEKEEPER_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("LEASEKEEPER_DATABASE_URL", self._build_sqlite_url())
        self.BATCH_SIZE = min(
            _env_int("LEASEKEEPER_BATCH_SIZE", self.MAX_BATCH_SIZE), self.MAX_BATCH_SIZE
        )
        self.STORE_RETRIES = _env_int("LEASEKEEPER_STORE_RETRIES", 3)
        self.SWEEP_HOUR = _env_hour("LEASEKEEPER_SWEEP_HOUR", 1)
        self.ACCRUAL_HOUR = _env_hour("LEASEKEEPER_ACCRUAL_HOUR", 2)
        self.LOG_LEVEL = os.getenv("LEASEKEEPER_LOG_LEVEL", "").strip().upper() or "INFO"

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("LEASEKEEPER_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        engine_options: dict[str, Any] = {}
        if self.DATABASE_URL.startswith("sqlite"):
            engine_options["connect_args"] = {"check_same_thread": False, "timeout": 30}
        return engine_options
