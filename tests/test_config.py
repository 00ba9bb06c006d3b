from __future__ import annotations

import pytest

from leasekeeper.config import BaseConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in (
        "LEASEKEEPER_DATABASE_URL",
        "LEASEKEEPER_BATCH_SIZE",
        "LEASEKEEPER_STORE_RETRIES",
        "LEASEKEEPER_SWEEP_HOUR",
        "LEASEKEEPER_ACCRUAL_HOUR",
        "LEASEKEEPER_DEV_MODE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LEASEKEEPER_DATA_DIR", str(tmp_path / "data"))


def test_defaults(tmp_path):
    config = BaseConfig()

    assert config.DATA_DIR == (tmp_path / "data").resolve()
    assert config.DATA_DIR.is_dir()
    assert config.DATABASE_URL == f"sqlite:///{config.DATA_DIR / 'leasekeeper.db'}"
    assert config.DEV_MODE is True
    assert config.BATCH_SIZE == 500
    assert config.STORE_RETRIES == 3
    assert config.SWEEP_HOUR == 1
    assert config.ACCRUAL_HOUR == 2
    assert config.sqlalchemy_engine_options()["connect_args"]["check_same_thread"] is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LEASEKEEPER_DATABASE_URL", "postgresql://localhost/leases")
    monkeypatch.setenv("LEASEKEEPER_BATCH_SIZE", "100")
    monkeypatch.setenv("LEASEKEEPER_DEV_MODE", "off")
    monkeypatch.setenv("LEASEKEEPER_SWEEP_HOUR", "23")

    config = BaseConfig()

    assert config.DATABASE_URL == "postgresql://localhost/leases"
    assert config.BATCH_SIZE == 100
    assert config.DEV_MODE is False
    assert config.SWEEP_HOUR == 23
    assert config.sqlalchemy_engine_options() == {}


def test_batch_size_is_capped(monkeypatch):
    monkeypatch.setenv("LEASEKEEPER_BATCH_SIZE", "5000")

    assert BaseConfig().BATCH_SIZE == 500


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("LEASEKEEPER_STORE_RETRIES", "0"),
        ("LEASEKEEPER_STORE_RETRIES", "-3"),
        ("LEASEKEEPER_STORE_RETRIES", "many"),
        ("LEASEKEEPER_SWEEP_HOUR", "24"),
        ("LEASEKEEPER_SWEEP_HOUR", "-1"),
        ("LEASEKEEPER_ACCRUAL_HOUR", "25"),
    ],
)
def test_invalid_integers_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        BaseConfig()


def test_midnight_is_a_valid_job_hour(monkeypatch):
    monkeypatch.setenv("LEASEKEEPER_SWEEP_HOUR", "0")
    monkeypatch.setenv("LEASEKEEPER_ACCRUAL_HOUR", "0")

    config = BaseConfig()

    assert config.SWEEP_HOUR == 0
    assert config.ACCRUAL_HOUR == 0
