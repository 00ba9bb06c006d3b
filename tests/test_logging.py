"""Tests for structured logging."""

from __future__ import annotations

import json
import logging
import logging.handlers
import sys

import pytest

from leasekeeper.config import BaseConfig
from leasekeeper.errors import StoreUnavailable
from leasekeeper.logging_config import JSONFormatter, get_logger, setup_logging


@pytest.fixture
def config(tmp_path, monkeypatch):
    monkeypatch.setenv("LEASEKEEPER_DATA_DIR", str(tmp_path))
    yield BaseConfig()
    logging.getLogger("leasekeeper").handlers.clear()


def _record(msg="Sweep finished", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="leasekeeper.services.overdue",
        level=level,
        pathname="overdue.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    record.module = "overdue"
    record.funcName = "run_overdue_sweep"
    record.__dict__.update(extra)
    return record


def test_json_formatter():
    log_data = json.loads(JSONFormatter().format(_record()))

    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "leasekeeper.services.overdue"
    assert log_data["message"] == "Sweep finished"
    assert log_data["module"] == "overdue"
    assert log_data["function"] == "run_overdue_sweep"
    assert log_data["line"] == 42
    assert "timestamp" in log_data
    assert "extra" not in log_data


def test_json_formatter_lifts_schedule_context():
    log_data = json.loads(
        JSONFormatter().format(_record(schedule_id="abc", operation="overdue_sweep", updated=3))
    )

    assert log_data["schedule_id"] == "abc"
    assert log_data["operation"] == "overdue_sweep"
    assert log_data["extra"] == {"updated": 3}


def test_json_formatter_with_exception():
    try:
        raise ValueError("Invalid amount")
    except ValueError:
        exc_info = sys.exc_info()

    log_data = json.loads(JSONFormatter().format(_record("Write failed", logging.ERROR, exc_info)))

    assert log_data["exception"]["type"] == "ValueError"
    assert "Invalid amount" in log_data["exception"]["message"]
    assert log_data["exception"]["retryable"] is False
    assert log_data["exception"]["traceback"]


def test_json_formatter_marks_retryable_store_errors():
    try:
        raise StoreUnavailable("database is locked")
    except StoreUnavailable:
        exc_info = sys.exc_info()

    log_data = json.loads(JSONFormatter().format(_record("Batch failed", logging.ERROR, exc_info)))

    assert log_data["exception"]["type"] == "StoreUnavailable"
    assert log_data["exception"]["retryable"] is True


def test_setup_logging(config, tmp_path):
    logger = setup_logging(config)

    assert logger.name == "leasekeeper"
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 2

    log_file = tmp_path / "logs" / "leasekeeper.log"
    assert log_file.exists()

    get_logger(__name__).warning("Batch write failed", extra={"batch": 2})
    for handler in logger.handlers:
        handler.flush()

    entries = [json.loads(line) for line in log_file.read_text().splitlines() if line.strip()]
    assert entries[0]["message"] == "Logging initialized"
    assert entries[-1]["message"] == "Batch write failed"
    assert entries[-1]["batch"] == 2
    assert "extra" not in entries[-1]


def test_setup_logging_is_repeatable(config):
    setup_logging(config)
    logger = setup_logging(config)

    assert len(logger.handlers) == 2


def test_get_logger():
    assert get_logger("module1").name == "leasekeeper.module1"
    assert get_logger("leasekeeper.services.penalties").name == "leasekeeper.services.penalties"
    assert get_logger("leasekeeper").name == "leasekeeper"


@pytest.mark.parametrize("dev_mode", [True, False])
def test_console_level_follows_dev_mode(config, dev_mode):
    config.DEV_MODE = dev_mode

    logger = setup_logging(config)

    console = next(
        handler
        for handler in logger.handlers
        if isinstance(handler, logging.StreamHandler)
        and not isinstance(handler, logging.handlers.RotatingFileHandler)
    )
    assert console.level == (logging.INFO if dev_mode else logging.WARNING)


def test_log_level_comes_from_config(config, tmp_path):
    config.LOG_LEVEL = "WARNING"

    logger = setup_logging(config)
    get_logger("services.overdue").info("Sweep finished")
    get_logger("services.overdue").warning("Sweep cancelled", extra={"operation": "overdue_sweep"})
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.WARNING
    lines = (tmp_path / "logs" / "leasekeeper.log").read_text().splitlines()
    entries = [json.loads(line) for line in lines if line.strip()]
    assert [entry["message"] for entry in entries] == ["Sweep cancelled"]


def test_unknown_log_level_is_rejected(config):
    config.LOG_LEVEL = "CHATTY"

    with pytest.raises(ValueError):
        setup_logging(config)
