"""Batched schedule writes, cooperative cancellation and store retries."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Mapping, Optional, Sequence, TypeVar

from ..domain.repositories.schedule import ScheduleRepository
from ..domain.schedule import LeasePaymentSchedule
from ..errors import LeaseKeeperError
from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 500
DEFAULT_RETRIES = 3


@dataclass(slots=True)
class BatchRunResult:
    """Outcome of a bulk pass over schedules."""

    total_schedules: int = 0
    updated_schedules: int = 0
    updated_obligations: int = 0
    errors: dict[str, str] = field(default_factory=dict)
    failed_batches: list[int] = field(default_factory=list)
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.errors and not self.failed_batches and not self.cancelled

    def as_dict(self) -> dict:
        return {
            "total_schedules": self.total_schedules,
            "updated_schedules": self.updated_schedules,
            "updated_obligations": self.updated_obligations,
            "errors": dict(self.errors),
            "failed_batches": list(self.failed_batches),
            "cancelled": self.cancelled,
        }


class CancellationToken:
    """Cooperative stop signal, honoured between batches only."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most *size* items."""

    if size <= 0:
        raise ValueError("Batch size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def backoff_seconds(attempt: int, *, base: float = 0.1, cap: float = 2.0) -> float:
    """Exponential backoff: base * 2^attempt, capped."""

    return min(cap, base * (2 ** max(0, attempt)))


def with_store_retry(
    fn: Callable[[], T],
    *,
    retries: int = DEFAULT_RETRIES,
    base_delay: float = 0.1,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call *fn*, retrying retryable errors up to *retries* extra times."""

    attempt = 0
    while True:
        try:
            return fn()
        except LeaseKeeperError as exc:
            if not exc.retryable or attempt >= retries:
                raise
            delay = backoff_seconds(attempt, base=base_delay)
            logger.warning(
                "Store unavailable, retrying",
                extra={"attempt": attempt + 1, "delay_seconds": delay},
            )
            sleep(delay)
            attempt += 1


def run_batched(
    *,
    repository: ScheduleRepository,
    schedules: Iterable[LeasePaymentSchedule],
    mutate: Callable[[LeasePaymentSchedule], Optional[int]],
    operation: str,
    batch_size: int = DEFAULT_BATCH_SIZE,
    cancel_token: Optional[CancellationToken] = None,
    retries: int = DEFAULT_RETRIES,
    sleep: Callable[[float], None] = time.sleep,
    failures: Optional[Mapping[str, str]] = None,
) -> BatchRunResult:
    """Apply *mutate* to every schedule and persist changes batch by batch.

    ``mutate`` edits a schedule in place and returns the number of obligations
    it changed, or ``None`` when the schedule needs no write. Each batch is
    committed atomically. A failing batch is recorded and the run moves on to
    the next one. *failures* carries schedules that could not be loaded; they
    count toward the total and are reported as errors.
    """

    items = list(schedules)
    failures = dict(failures or {})
    result = BatchRunResult(total_schedules=len(items) + len(failures), errors=failures)
    batch_size = min(batch_size, DEFAULT_BATCH_SIZE)

    for index, batch in enumerate(chunked(items, batch_size)):
        if cancel_token is not None and cancel_token.cancelled:
            result.cancelled = True
            logger.info(
                "Batch run cancelled",
                extra={"operation": operation, "next_batch": index},
            )
            break

        changed: list[LeasePaymentSchedule] = []
        obligations = 0
        for schedule in batch:
            try:
                count = mutate(schedule)
            except LeaseKeeperError as exc:
                logger.error(
                    "Schedule skipped",
                    extra={"operation": operation, "schedule_id": schedule.id, "error": str(exc)},
                )
                result.errors[str(schedule.id)] = str(exc)
                continue
            if count is not None:
                changed.append(schedule)
                obligations += count

        if not changed:
            continue

        try:
            with_store_retry(lambda: repository.save_many(changed), retries=retries, sleep=sleep)
        except LeaseKeeperError as exc:
            logger.error(
                "Batch write failed",
                extra={"operation": operation, "batch": index, "size": len(changed), "error": str(exc)},
            )
            result.failed_batches.append(index)
            for schedule in changed:
                result.errors[str(schedule.id)] = str(exc)
            continue

        result.updated_schedules += len(changed)
        result.updated_obligations += obligations

    logger.info("Batch run finished", extra={"operation": operation, **result.as_dict()})
    return result


__all__ = [
    "BatchRunResult",
    "CancellationToken",
    "backoff_seconds",
    "chunked",
    "run_batched",
    "with_store_retry",
]
