"""Late penalty calculation and daily accrual."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from ..domain.money import ZERO, to_money
from ..domain.repositories.directory import LeaseDirectory
from ..domain.repositories.schedule import ScheduleRepository
from ..domain.schedule import (
    AggregatedPenalty,
    LeasePaymentSchedule,
    ObligationStatus,
    PenaltyAccrual,
)
from ..domain.settings import Actor, BusinessRules, OrganizationSettings
from ..errors import ValidationError
from ..logging_config import get_logger
from .batching import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_RETRIES,
    BatchRunResult,
    CancellationToken,
    run_batched,
    with_store_retry,
)
from .schedules import get_schedule
from .settings import resolve_rules

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PenaltyCalculation:
    days_late: int
    grace_period_used: bool
    is_late: bool
    days_overdue: int
    amount: Decimal


def calculate_penalty(due_date: date, as_of: date, rules: BusinessRules) -> PenaltyCalculation:
    """Penalty owed on *as_of* for an obligation due on *due_date*.

    Nothing is owed while the payment is within the grace period or before
    the late fee start day; after that each further day costs one late fee.
    """

    days_late = (as_of - due_date).days
    grace_period_used = days_late <= rules.grace_period_days
    is_late = days_late > rules.late_fee_start_day and not grace_period_used
    days_overdue = max(0, days_late - rules.late_fee_start_day)
    amount = to_money(rules.late_fee_amount * days_overdue) if is_late else ZERO
    return PenaltyCalculation(
        days_late=days_late,
        grace_period_used=grace_period_used,
        is_late=is_late,
        days_overdue=days_overdue,
        amount=amount,
    )


def accrue_penalties(
    *,
    schedule: LeasePaymentSchedule,
    rules: BusinessRules,
    today: date,
    now: Optional[datetime] = None,
) -> Optional[PenaltyAccrual]:
    """Append today's penalty increment to the schedule's aggregated balance.

    The increment for each overdue obligation is what it owes as of *today*
    minus what earlier entries already charged for the same month. Returns
    the new history entry, or None when there is nothing to add or the
    schedule was already accrued today.
    """

    penalty = schedule.aggregated_penalty
    if penalty is not None and penalty.last_calculated is not None:
        if penalty.last_calculated.date() == today:
            return None

    breakdown: dict[str, dict] = {}
    increment = ZERO
    for obligation in schedule.obligations:
        if obligation.status is not ObligationStatus.OVERDUE:
            continue
        calculation = calculate_penalty(obligation.due_date, today, rules)
        if not calculation.is_late:
            continue
        already = penalty.accrued_for(obligation.month_key) if penalty else ZERO
        owed = to_money(calculation.amount - already)
        if owed <= ZERO:
            continue
        breakdown[obligation.month_key] = {
            "days_late": calculation.days_late,
            "amount": str(owed),
        }
        increment += owed

    if increment <= ZERO:
        return None

    at = now or datetime.combine(today, datetime.min.time(), tzinfo=timezone.utc)
    accrual = PenaltyAccrual(
        date=at,
        amount_added=to_money(increment),
        basis={"rules": rules.as_basis(), "obligations": breakdown},
    )
    if schedule.aggregated_penalty is None:
        schedule.aggregated_penalty = AggregatedPenalty()
    schedule.aggregated_penalty.add(accrual)
    return accrual


def run_penalty_accrual(
    *,
    repository: ScheduleRepository,
    settings: OrganizationSettings,
    today: date,
    directory: Optional[LeaseDirectory] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    cancel_token: Optional[CancellationToken] = None,
    retries: int = DEFAULT_RETRIES,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchRunResult:
    """Accrue penalties on every schedule with overdue obligations."""

    scan = with_store_retry(repository.scan_all, retries=retries, sleep=sleep)

    def accrue(schedule: LeasePaymentSchedule) -> Optional[int]:
        rules = resolve_rules(schedule.facility_id, settings=settings, directory=directory)
        accrual = accrue_penalties(schedule=schedule, rules=rules, today=today)
        if accrual is None:
            return None
        return len(accrual.basis["obligations"])

    return run_batched(
        repository=repository,
        schedules=scan.schedules,
        failures=scan.failures,
        mutate=accrue,
        operation="penalty_accrual",
        batch_size=batch_size,
        cancel_token=cancel_token,
        retries=retries,
        sleep=sleep,
    )


def record_penalty_payment(
    *,
    repository: ScheduleRepository,
    schedule_id: str,
    amount: Decimal | str | int,
    actor: Actor,
    payment_method: Optional[str] = None,
) -> LeasePaymentSchedule:
    """Apply a payment against the outstanding penalty balance."""

    schedule = get_schedule(repository, schedule_id)
    penalty = schedule.aggregated_penalty
    paid = to_money(amount)
    if paid <= ZERO:
        raise ValidationError("Penalty payment must be positive")
    if penalty is None or penalty.outstanding_amount <= ZERO:
        raise ValidationError(f"Schedule {schedule_id} has no outstanding penalty")
    if paid > penalty.outstanding_amount:
        raise ValidationError(
            f"Penalty payment {paid} exceeds outstanding penalty {penalty.outstanding_amount}"
        )
    penalty.apply_payment(paid)
    saved = repository.save(schedule)
    logger.info(
        "Penalty payment recorded",
        extra={
            "schedule_id": schedule_id,
            "amount": str(paid),
            "payment_method": payment_method,
            "actor": actor.user_id,
            "outstanding": str(penalty.outstanding_amount),
        },
    )
    return saved


__all__ = [
    "PenaltyCalculation",
    "accrue_penalties",
    "calculate_penalty",
    "record_penalty_payment",
    "run_penalty_accrual",
]
