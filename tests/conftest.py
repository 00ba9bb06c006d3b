"""Pytest configuration and shared fixtures for LeaseKeeper tests.

This module provides database fixtures, test data factories, and helper utilities
for testing domain logic, repositories, and services without touching a real store.
"""

from __future__ import annotations

import itertools
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlmodel import create_engine

from leasekeeper.domain.schedule import DueDatePolicy
from leasekeeper.domain.settings import (
    Actor,
    BusinessRules,
    LeaseTerms,
    OrganizationSettings,
    Role,
)
from leasekeeper.infra.database import create_session_factory, init_database
from leasekeeper.infra.repositories import (
    SQLModelApprovalRepository,
    SQLModelMaintenanceExpenseRepository,
    SQLModelPayoutRepository,
    SQLModelScheduleRepository,
    SQLModelSettingsRepository,
)
from leasekeeper.models.schedule import PaymentScheduleRecord
from leasekeeper.services.maintenance import RoomAllocation, record_expense
from leasekeeper.services.schedules import create_schedule

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    init_database(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching the one used by the application context."""

    return create_session_factory(db_engine)


@pytest.fixture
def schedule_repo(session_factory) -> SQLModelScheduleRepository:
    return SQLModelScheduleRepository(session_factory)


@pytest.fixture
def approval_repo(session_factory) -> SQLModelApprovalRepository:
    return SQLModelApprovalRepository(session_factory)


@pytest.fixture
def payout_repo(session_factory) -> SQLModelPayoutRepository:
    return SQLModelPayoutRepository(session_factory)


@pytest.fixture
def maintenance_repo(session_factory) -> SQLModelMaintenanceExpenseRepository:
    return SQLModelMaintenanceExpenseRepository(session_factory)


@pytest.fixture
def settings_repo(session_factory) -> SQLModelSettingsRepository:
    return SQLModelSettingsRepository(session_factory)


# =============================================================================
# Actors and settings
# =============================================================================


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin-1", role=Role.SYSTEM_ADMIN)


@pytest.fixture
def clerk() -> Actor:
    return Actor(user_id="clerk-1", role=Role.STANDARD_USER)


@pytest.fixture
def rules() -> BusinessRules:
    """Late fee of 50 per day from day 4, three grace days."""

    return BusinessRules(
        late_fee_amount=Decimal("50.00"),
        late_fee_start_day=4,
        grace_period_days=3,
        child_surcharge=Decimal("10.00"),
    )


@pytest.fixture
def org_settings(rules) -> OrganizationSettings:
    return OrganizationSettings(
        due_date_policy=DueDatePolicy.FIRST_DAY,
        allow_standard_user_past_payments=False,
        max_past_payment_days=30,
        default_rules=rules,
    )


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def lease_factory():
    """Factory for lease terms with sensible defaults."""

    counter = itertools.count(1)

    def _create_lease(
        *,
        lease_id: str | None = None,
        room_id: str = "room-1",
        start_date: date = date(2025, 1, 1),
        end_date: date = date(2025, 12, 31),
        monthly_rent: Decimal | str = "1000.00",
        deposit_amount: Decimal | str = "1000.00",
        deposit_paid: bool = True,
        children_count: int = 0,
    ) -> LeaseTerms:
        number = next(counter)
        return LeaseTerms(
            lease_id=lease_id or f"lease-{number}",
            facility_id="facility-1",
            room_id=room_id,
            renter_id=f"renter-{number}",
            start_date=start_date,
            end_date=end_date,
            monthly_rent=Decimal(monthly_rent),
            deposit_amount=Decimal(deposit_amount),
            deposit_paid=deposit_paid,
            deposit_paid_date=start_date if deposit_paid else None,
            deposit_payment_method="eft" if deposit_paid else None,
            children_count=children_count,
        )

    return _create_lease


@pytest.fixture
def schedule_factory(schedule_repo, lease_factory, org_settings):
    """Factory that generates and persists a schedule for a new lease."""

    def _create_schedule(**lease_overrides):
        lease = lease_factory(**lease_overrides)
        return create_schedule(repository=schedule_repo, lease=lease, settings=org_settings)

    return _create_schedule


@pytest.fixture
def expense_factory(maintenance_repo, admin):
    """Factory for maintenance expenses split across rooms."""

    def _create_expense(
        allocations: dict[str, str],
        *,
        recoverable_rooms: tuple[str, ...] = (),
        description: str = "Geyser replacement",
    ):
        lines = [RoomAllocation(room_id=room, amount=Decimal(amount)) for room, amount in allocations.items()]
        total = sum((line.amount for line in lines), Decimal("0.00"))
        return record_expense(
            repository=maintenance_repo,
            facility_id="facility-1",
            description=description,
            total_amount=total,
            expense_date=date(2025, 6, 1),
            allocations=lines,
            actor=admin,
            recoverable_rooms=recoverable_rooms,
        )

    return _create_expense


@pytest.fixture
def corrupt_schedule(session_factory):
    """Overwrite one stored obligation's status with a value the engine rejects."""

    def _corrupt(schedule_id: str, month_key: str = "2025-01", status: str = "cancelled") -> None:
        with session_factory() as session:
            record = session.get(PaymentScheduleRecord, schedule_id)
            obligations = [dict(item) for item in record.obligations]
            for item in obligations:
                if item["month_key"] == month_key:
                    item["status"] = status
            record.obligations = obligations
            session.add(record)

    return _corrupt
