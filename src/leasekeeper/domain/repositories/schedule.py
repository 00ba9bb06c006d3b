"""Schedule repository protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol, Sequence

from ..schedule import LeasePaymentSchedule


@dataclass(slots=True)
class ScheduleScan:
    """Every stored schedule, split into decoded ones and unreadable rows."""

    schedules: list[LeasePaymentSchedule] = field(default_factory=list)
    # schedule id -> decode error
    failures: dict[str, str] = field(default_factory=dict)


class ScheduleRepository(Protocol):
    """Repository for lease payment schedule documents."""

    def get_by_id(self, schedule_id: str) -> Optional[LeasePaymentSchedule]:
        """Retrieve a schedule by ID."""
        ...

    def get_by_lease_id(self, lease_id: str) -> Optional[LeasePaymentSchedule]:
        """Retrieve the schedule of a lease."""
        ...

    def get_by_lease_ids(self, lease_ids: Iterable[str]) -> list[LeasePaymentSchedule]:
        """Retrieve the schedules that exist for the given leases."""
        ...

    def list_all(self) -> list[LeasePaymentSchedule]:
        """List every schedule ordered by ID."""
        ...

    def scan_all(self) -> ScheduleScan:
        """Like ``list_all`` but reports unreadable rows instead of raising."""
        ...

    def create(self, schedule: LeasePaymentSchedule) -> LeasePaymentSchedule:
        """Insert a new schedule; ConflictError if the lease already has one."""
        ...

    def save(self, schedule: LeasePaymentSchedule) -> LeasePaymentSchedule:
        """Write back a loaded schedule; ConflictError if it changed meanwhile."""
        ...

    def save_many(self, schedules: Sequence[LeasePaymentSchedule]) -> list[LeasePaymentSchedule]:
        """Write back several schedules in one transaction (all or nothing)."""
        ...
