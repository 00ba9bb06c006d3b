"""Lease payment schedule generation and lookup."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from ..domain.money import ZERO, to_money
from ..domain.repositories.schedule import ScheduleRepository
from ..domain.schedule import (
    DEPOSIT_SUFFIX,
    DueDatePolicy,
    LeasePaymentSchedule,
    Obligation,
    ObligationKind,
    ObligationStatus,
    month_key_for,
)
from ..domain.settings import BusinessRules, LeaseTerms, OrganizationSettings
from ..errors import ConflictError, NotFoundError
from ..logging_config import get_logger
from .due_dates import coerce_policy, due_date, iter_months

logger = get_logger(__name__)


def monthly_amount(lease: LeaseTerms, rules: BusinessRules) -> Decimal:
    """Rent plus the per-child surcharge."""

    return to_money(lease.monthly_rent + rules.child_surcharge * lease.children_count)


def _deposit_obligation(lease: LeaseTerms) -> Obligation:
    obligation = Obligation(
        month_key=f"{month_key_for(lease.start_date)}{DEPOSIT_SUFFIX}",
        due_date=lease.start_date,
        amount=lease.deposit_amount,
        kind=ObligationKind.DEPOSIT,
    )
    if lease.deposit_paid:
        obligation.status = ObligationStatus.PAID
        obligation.paid_amount = lease.deposit_amount
        obligation.paid_date = lease.deposit_paid_date or lease.start_date
        obligation.payment_method = lease.deposit_payment_method
    return obligation


def build_schedule(
    lease: LeaseTerms,
    *,
    policy: DueDatePolicy | str,
    rules: Optional[BusinessRules] = None,
    include_deposit: bool = True,
) -> LeasePaymentSchedule:
    """Build the unsaved schedule for a lease.

    The deposit (when there is one) comes first, followed by one rent
    obligation per calendar month from the start month to the end month.
    """

    policy = coerce_policy(policy)
    rules = rules or BusinessRules()
    schedule = LeasePaymentSchedule(
        lease_id=lease.lease_id,
        facility_id=lease.facility_id,
        room_id=lease.room_id,
        renter_id=lease.renter_id,
        due_date_policy=policy,
    )
    if include_deposit and lease.deposit_amount > ZERO:
        schedule.obligations.append(_deposit_obligation(lease))

    amount = monthly_amount(lease, rules)
    for year, month in iter_months(lease.start_date, lease.end_date):
        schedule.obligations.append(
            Obligation(
                month_key=f"{year:04d}-{month:02d}",
                due_date=due_date(year, month, policy),
                amount=amount,
                kind=ObligationKind.RENT,
            )
        )
    schedule.recompute_totals()
    return schedule


def create_schedule(
    *,
    repository: ScheduleRepository,
    lease: LeaseTerms,
    settings: OrganizationSettings,
    rules: Optional[BusinessRules] = None,
    include_deposit: bool = True,
) -> LeasePaymentSchedule:
    """Generate and persist the schedule of a new lease."""

    if repository.get_by_lease_id(lease.lease_id) is not None:
        raise ConflictError(f"Lease {lease.lease_id} already has a payment schedule")
    schedule = build_schedule(
        lease,
        policy=settings.due_date_policy,
        rules=rules or settings.default_rules,
        include_deposit=include_deposit,
    )
    created = repository.create(schedule)
    logger.info(
        "Payment schedule generated",
        extra={
            "lease_id": lease.lease_id,
            "schedule_id": created.id,
            "obligations": len(created.obligations),
            "total_amount": str(created.total_amount),
        },
    )
    return created


def get_schedule(repository: ScheduleRepository, schedule_id: str) -> LeasePaymentSchedule:
    schedule = repository.get_by_id(schedule_id)
    if schedule is None:
        raise NotFoundError(f"Schedule {schedule_id} not found")
    return schedule


def get_schedule_for_lease(repository: ScheduleRepository, lease_id: str) -> LeasePaymentSchedule:
    schedule = repository.get_by_lease_id(lease_id)
    if schedule is None:
        raise NotFoundError(f"No payment schedule for lease {lease_id}")
    return schedule


def get_schedules_for_leases(
    repository: ScheduleRepository, lease_ids: Iterable[str]
) -> dict[str, LeasePaymentSchedule]:
    """Schedules keyed by lease id; leases without one are left out."""

    return {schedule.lease_id: schedule for schedule in repository.get_by_lease_ids(lease_ids)}


__all__ = [
    "build_schedule",
    "create_schedule",
    "get_schedule",
    "get_schedule_for_lease",
    "get_schedules_for_leases",
    "monthly_amount",
]
