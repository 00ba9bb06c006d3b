"""Tests for engine and session plumbing."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError, OperationalError

from leasekeeper.config import BaseConfig
from leasekeeper.errors import StoreUnavailable
from leasekeeper.infra.database import bootstrap_database, store_errors
from leasekeeper.models import AppSetting


@pytest.fixture
def store(tmp_path, monkeypatch):
    monkeypatch.setenv("LEASEKEEPER_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("LEASEKEEPER_DATABASE_URL", raising=False)
    store = bootstrap_database(BaseConfig())
    yield store
    store.engine.dispose()


def test_bootstrap_creates_payment_tables(store):
    tables = set(inspect(store.engine).get_table_names())

    assert {"payment_schedule", "payment_approval", "deposit_payout", "app_setting"} <= tables


def test_sqlite_connections_enforce_foreign_keys(store):
    with store.session_factory() as session:
        enabled = session.connection().exec_driver_sql("PRAGMA foreign_keys").scalar()

    assert enabled == 1


def test_unit_of_work_commits_on_exit(store):
    with store.session_factory() as session:
        session.add(AppSetting(key="grace_period_days", value="3"))

    with store.session_factory() as session:
        assert session.get(AppSetting, "grace_period_days").value == "3"


def test_unit_of_work_rolls_back_on_error(store):
    with pytest.raises(RuntimeError):
        with store.session_factory() as session:
            session.add(AppSetting(key="late_fee_amount", value="50"))
            session.flush()
            raise RuntimeError("batch aborted")

    with store.session_factory() as session:
        assert session.get(AppSetting, "late_fee_amount") is None


def test_locked_database_becomes_store_unavailable():
    with pytest.raises(StoreUnavailable) as excinfo:
        with store_errors():
            raise OperationalError("UPDATE payment_schedule", {}, Exception("database is locked"))

    assert excinfo.value.retryable is True
    assert "database is locked" in str(excinfo.value)


def test_constraint_violations_are_not_retried():
    with pytest.raises(IntegrityError):
        with store_errors():
            raise IntegrityError("INSERT INTO payment_approval", {}, Exception("UNIQUE constraint failed"))
