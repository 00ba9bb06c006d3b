"""JSON logging for the payment engine.

Every record written to ``logs/leasekeeper.log`` is one JSON object. The
fields that identify engine work (which schedule, lease and month were being
processed, by which operation and actor) are lifted to the top level so a
log search can filter on them directly; any other ``extra`` values are kept
under ``"extra"``.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path

from .config import BaseConfig
from .errors import LeaseKeeperError

ROOT_LOGGER_NAME = "leasekeeper"
LOG_FILENAME = "leasekeeper.log"

# Fields identifying the schedule work a record belongs to.
CONTEXT_FIELDS = ("operation", "schedule_id", "lease_id", "month_key", "actor", "batch")

_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


class JSONFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        extra: dict[str, object] = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS:
                continue
            if key in CONTEXT_FIELDS:
                entry[key] = value
            else:
                extra[key] = value
        if extra:
            entry["extra"] = extra

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            entry["exception"] = {
                "type": type(exc).__name__,
                "message": str(exc),
                "retryable": isinstance(exc, LeaseKeeperError) and exc.retryable,
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=str)


def resolve_level(name: str) -> int:
    """Map a level name such as ``"debug"`` to its ``logging`` constant."""

    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level {name!r}")
    return level


def setup_logging(config: BaseConfig) -> logging.Logger:
    """Attach the console and rotating JSON file handlers to the package logger.

    Calling it again replaces the handlers instead of stacking them. The file
    handler honours ``config.LOG_LEVEL``; the console only shows warnings
    outside dev mode so the nightly jobs stay quiet.
    """
    level = resolve_level(config.LOG_LEVEL)
    logs_dir = Path(config.DATA_DIR) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / LOG_FILENAME

    engine_logger = logging.getLogger(ROOT_LOGGER_NAME)
    engine_logger.setLevel(level)
    for handler in list(engine_logger.handlers):
        engine_logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level if config.DEV_MODE else max(level, logging.WARNING))
    console.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", datefmt="%H:%M:%S")
    )
    engine_logger.addHandler(console)

    file_handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(JSONFormatter())
    engine_logger.addHandler(file_handler)

    engine_logger.info(
        "Logging initialized",
        extra={"dev_mode": config.DEV_MODE, "log_file": str(log_file), "level": config.LOG_LEVEL},
    )
    return engine_logger


def get_logger(name: str) -> logging.Logger:
    """Logger namespaced under ``leasekeeper`` so ``setup_logging`` covers it."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
