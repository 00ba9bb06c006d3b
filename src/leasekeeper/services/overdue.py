"""Nightly overdue sweep over every lease payment schedule."""

from __future__ import annotations

import time
from datetime import date, timedelta
from typing import Callable, Optional

from ..domain.repositories.directory import LeaseDirectory
from ..domain.repositories.schedule import ScheduleRepository
from ..domain.schedule import LeasePaymentSchedule, ObligationStatus
from ..domain.settings import BusinessRules, OrganizationSettings
from ..logging_config import get_logger
from .batching import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_RETRIES,
    BatchRunResult,
    CancellationToken,
    run_batched,
    with_store_retry,
)
from .due_dates import due_date_for_key
from .settings import resolve_rules

logger = get_logger(__name__)


def mark_overdue(
    schedule: LeasePaymentSchedule,
    *,
    rules: BusinessRules,
    settings: OrganizationSettings,
    today: date,
) -> Optional[int]:
    """Flip pending monthly obligations past their grace period to overdue.

    Due dates are evaluated under the schedule's own policy (the organization
    policy for legacy schedules without one). Returns the number of flipped
    obligations, or None when nothing changed.
    """

    policy = schedule.due_date_policy or settings.due_date_policy
    grace = timedelta(days=rules.grace_period_days)
    flipped = 0
    for obligation in schedule.obligations:
        if obligation.status is not ObligationStatus.PENDING or not obligation.is_monthly:
            continue
        due = due_date_for_key(obligation.month_key, policy)
        if today > due + grace:
            obligation.status = ObligationStatus.OVERDUE
            flipped += 1
    if not flipped:
        return None
    schedule.recompute_totals()
    return flipped


def run_overdue_sweep(
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
    """Mark overdue obligations across all schedules, batch by batch."""

    scan = with_store_retry(repository.scan_all, retries=retries, sleep=sleep)
    logger.info("Overdue sweep started", extra={"today": today.isoformat(), "schedules": len(scan.schedules)})

    def sweep(schedule: LeasePaymentSchedule) -> Optional[int]:
        rules = resolve_rules(schedule.facility_id, settings=settings, directory=directory)
        return mark_overdue(schedule, rules=rules, settings=settings, today=today)

    return run_batched(
        repository=repository,
        schedules=scan.schedules,
        failures=scan.failures,
        mutate=sweep,
        operation="overdue_sweep",
        batch_size=batch_size,
        cancel_token=cancel_token,
        retries=retries,
        sleep=sleep,
    )


__all__ = ["mark_overdue", "run_overdue_sweep"]
