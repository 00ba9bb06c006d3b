"""Due date policy migration with dry-run preview."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional

from ..domain.repositories.schedule import ScheduleRepository
from ..domain.schedule import (
    DueDatePolicy,
    LeasePaymentSchedule,
    Obligation,
    ObligationKind,
    ObligationStatus,
)
from ..logging_config import get_logger
from .batching import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_RETRIES,
    BatchRunResult,
    CancellationToken,
    run_batched,
    with_store_retry,
)
from .due_dates import coerce_policy, due_date_for_key

logger = get_logger(__name__)


@dataclass(slots=True)
class MigrationPreview:
    """What a policy change would touch, computed without writing."""

    policy: DueDatePolicy
    total_schedules: int = 0
    schedules_to_update: int = 0
    payments_to_update: int = 0
    status_changes: dict[str, int] = field(
        default_factory=lambda: {"overdue_to_pending": 0, "pending_to_overdue": 0}
    )
    unreadable_schedules: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class _PlannedChange:
    due_date: date
    status: ObligationStatus


def _migrated_status(status: ObligationStatus, new_due: date, today: date) -> ObligationStatus:
    if status is ObligationStatus.OVERDUE and new_due > today:
        return ObligationStatus.PENDING
    if status is ObligationStatus.PENDING and new_due < today:
        return ObligationStatus.OVERDUE
    return status


def _plan(obligation: Obligation, policy: DueDatePolicy, today: date) -> Optional[_PlannedChange]:
    """New due date and status for one obligation, or None when unaffected."""

    if obligation.kind is ObligationKind.DEPOSIT or not obligation.is_monthly:
        return None
    new_due = due_date_for_key(obligation.month_key, policy)
    new_status = _migrated_status(obligation.status, new_due, today)
    if new_due == obligation.due_date and new_status is obligation.status:
        return None
    return _PlannedChange(due_date=new_due, status=new_status)


def preview_policy_change(
    *,
    repository: ScheduleRepository,
    policy: DueDatePolicy | str,
    today: date,
    retries: int = DEFAULT_RETRIES,
) -> MigrationPreview:
    """Count the schedules, payments and status flips a migration would make."""

    policy = coerce_policy(policy)
    scan = with_store_retry(repository.scan_all, retries=retries)
    preview = MigrationPreview(
        policy=policy,
        total_schedules=len(scan.schedules) + len(scan.failures),
        unreadable_schedules=sorted(scan.failures),
    )
    for schedule in scan.schedules:
        planned = 0
        for obligation in schedule.obligations:
            change = _plan(obligation, policy, today)
            if change is None:
                continue
            planned += 1
            if change.status is not obligation.status:
                if change.status is ObligationStatus.PENDING:
                    preview.status_changes["overdue_to_pending"] += 1
                else:
                    preview.status_changes["pending_to_overdue"] += 1
        if planned:
            preview.schedules_to_update += 1
            preview.payments_to_update += planned
    logger.info(
        "Policy change preview",
        extra={
            "policy": policy.value,
            "schedules_to_update": preview.schedules_to_update,
            "payments_to_update": preview.payments_to_update,
        },
    )
    return preview


def apply_policy(schedule: LeasePaymentSchedule, policy: DueDatePolicy, today: date) -> Optional[int]:
    """Rewrite one schedule's due dates in place; None when already migrated."""

    changed = 0
    for obligation in schedule.obligations:
        change = _plan(obligation, policy, today)
        if change is None:
            continue
        obligation.due_date = change.due_date
        obligation.status = change.status
        changed += 1
    if not changed and schedule.due_date_policy is policy:
        return None
    schedule.due_date_policy = policy
    schedule.recompute_totals()
    return changed


def migrate_due_date_policy(
    *,
    repository: ScheduleRepository,
    policy: DueDatePolicy | str,
    today: date,
    batch_size: int = DEFAULT_BATCH_SIZE,
    cancel_token: Optional[CancellationToken] = None,
    retries: int = DEFAULT_RETRIES,
    sleep: Callable[[float], None] = time.sleep,
) -> BatchRunResult:
    """Move every schedule onto *policy*, flipping statuses as due dates move."""

    policy = coerce_policy(policy)
    scan = with_store_retry(repository.scan_all, retries=retries)
    return run_batched(
        repository=repository,
        schedules=scan.schedules,
        failures=scan.failures,
        mutate=lambda schedule: apply_policy(schedule, policy, today),
        operation="policy_migration",
        batch_size=batch_size,
        cancel_token=cancel_token,
        retries=retries,
        sleep=sleep,
    )


def backfill_due_date_policy(
    *,
    repository: ScheduleRepository,
    policy: DueDatePolicy | str,
    batch_size: int = DEFAULT_BATCH_SIZE,
    cancel_token: Optional[CancellationToken] = None,
    retries: int = DEFAULT_RETRIES,
) -> BatchRunResult:
    """Stamp *policy* onto legacy schedules stored without one."""

    policy = coerce_policy(policy)

    def stamp(schedule: LeasePaymentSchedule) -> Optional[int]:
        if schedule.due_date_policy is not None:
            return None
        schedule.due_date_policy = policy
        return 0

    scan = with_store_retry(repository.scan_all, retries=retries)
    return run_batched(
        repository=repository,
        schedules=scan.schedules,
        failures=scan.failures,
        mutate=stamp,
        operation="policy_backfill",
        batch_size=batch_size,
        cancel_token=cancel_token,
        retries=retries,
    )


__all__ = [
    "MigrationPreview",
    "apply_policy",
    "backfill_due_date_policy",
    "migrate_due_date_policy",
    "preview_policy_change",
]
