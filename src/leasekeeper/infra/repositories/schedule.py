"""SQLModel implementation of the schedule repository."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ...domain.money import to_money
from ...domain.schedule import (
    AggregatedPenalty,
    DueDatePolicy,
    LeasePaymentSchedule,
    Obligation,
)
from ...domain.repositories.schedule import ScheduleScan
from ...errors import ConflictError, LeaseKeeperError, NotFoundError, ValidationError
from ...logging_config import get_logger
from ...models.schedule import PaymentScheduleRecord, new_id
from ..database import store_errors

logger = get_logger(__name__)


def to_domain(record: PaymentScheduleRecord) -> LeasePaymentSchedule:
    """Rebuild a schedule entity from its stored row."""

    schedule = LeasePaymentSchedule(
        id=record.id,
        version=record.version,
        lease_id=record.lease_id,
        facility_id=record.facility_id,
        room_id=record.room_id,
        renter_id=record.renter_id,
        due_date_policy=DueDatePolicy(record.due_date_policy) if record.due_date_policy else None,
        obligations=[Obligation.from_document(item) for item in record.obligations or []],
        aggregated_penalty=(
            AggregatedPenalty.from_document(record.aggregated_penalty)
            if record.aggregated_penalty
            else None
        ),
        total_amount=to_money(record.total_amount),
        total_paid=to_money(record.total_paid),
        outstanding_amount=to_money(record.outstanding_amount),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )
    return schedule


def _decode(record: PaymentScheduleRecord) -> LeasePaymentSchedule:
    try:
        return to_domain(record)
    except (LeaseKeeperError, ArithmeticError, KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Schedule {record.id} is unreadable: {exc}") from exc


def _document_values(schedule: LeasePaymentSchedule) -> dict:
    return {
        "facility_id": schedule.facility_id,
        "room_id": schedule.room_id,
        "renter_id": schedule.renter_id,
        "due_date_policy": schedule.due_date_policy.value if schedule.due_date_policy else None,
        "obligations": schedule.obligations_document(),
        "aggregated_penalty": (
            schedule.aggregated_penalty.to_document() if schedule.aggregated_penalty else None
        ),
        "total_amount": schedule.total_amount,
        "total_paid": schedule.total_paid,
        "outstanding_amount": schedule.outstanding_amount,
    }


class SQLModelScheduleRepository:
    """SQLModel-based schedule repository with optimistic concurrency.

    Every write compares the ``version`` the caller loaded with the stored one
    and bumps it; a mismatch means another writer got there first.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, schedule_id: str) -> Optional[LeasePaymentSchedule]:
        """Retrieve a schedule by ID."""
        with store_errors(), self.session_factory() as session:
            record = session.get(PaymentScheduleRecord, schedule_id)
            return _decode(record) if record else None

    def get_by_lease_id(self, lease_id: str) -> Optional[LeasePaymentSchedule]:
        """Retrieve the schedule of a lease."""
        with store_errors(), self.session_factory() as session:
            record = session.exec(
                select(PaymentScheduleRecord).where(PaymentScheduleRecord.lease_id == lease_id)
            ).first()
            return _decode(record) if record else None

    def get_by_lease_ids(self, lease_ids: Iterable[str]) -> list[LeasePaymentSchedule]:
        """Retrieve the schedules that exist for the given leases."""
        wanted = list(dict.fromkeys(lease_ids))
        if not wanted:
            return []
        with store_errors(), self.session_factory() as session:
            statement = (
                select(PaymentScheduleRecord)
                .where(PaymentScheduleRecord.lease_id.in_(wanted))  # type: ignore
                .order_by(PaymentScheduleRecord.id)  # type: ignore
            )
            return [_decode(record) for record in session.exec(statement).all()]

    def list_all(self) -> list[LeasePaymentSchedule]:
        """List every schedule ordered by ID."""
        with store_errors(), self.session_factory() as session:
            statement = select(PaymentScheduleRecord).order_by(PaymentScheduleRecord.id)  # type: ignore
            return [_decode(record) for record in session.exec(statement).all()]

    def scan_all(self) -> ScheduleScan:
        """Decode every schedule, collecting unreadable rows by ID."""
        scan = ScheduleScan()
        with store_errors(), self.session_factory() as session:
            statement = select(PaymentScheduleRecord).order_by(PaymentScheduleRecord.id)  # type: ignore
            for record in session.exec(statement).all():
                try:
                    scan.schedules.append(_decode(record))
                except ValidationError as exc:
                    logger.error(
                        "Unreadable schedule skipped",
                        extra={"schedule_id": record.id, "error": str(exc)},
                    )
                    scan.failures[record.id] = str(exc)
        return scan

    def create(self, schedule: LeasePaymentSchedule) -> LeasePaymentSchedule:
        """Insert a new schedule; ConflictError if the lease already has one."""
        record = PaymentScheduleRecord(
            id=schedule.id or new_id(),
            lease_id=schedule.lease_id,
            version=0,
            **_document_values(schedule),
        )
        try:
            with store_errors(), self.session_factory() as session:
                session.add(record)
                session.commit()
                session.refresh(record)
        except IntegrityError as exc:
            raise ConflictError(f"Lease {schedule.lease_id} already has a payment schedule") from exc
        logger.info(
            "Schedule created",
            extra={"schedule_id": record.id, "lease_id": record.lease_id},
        )
        return _decode(record)

    def save(self, schedule: LeasePaymentSchedule) -> LeasePaymentSchedule:
        """Write back a loaded schedule; ConflictError if it changed meanwhile."""
        return self.save_many([schedule])[0]

    def save_many(self, schedules: Sequence[LeasePaymentSchedule]) -> list[LeasePaymentSchedule]:
        """Write back several schedules in one transaction (all or nothing)."""
        if not schedules:
            return []
        now = datetime.now(timezone.utc)
        with store_errors(), self.session_factory() as session:
            for schedule in schedules:
                self._compare_and_swap(session, schedule, now)
            session.commit()
        # Only reflect the new versions once the whole batch is durable.
        for schedule in schedules:
            schedule.version += 1
            schedule.updated_at = now
        return list(schedules)

    def _compare_and_swap(
        self, session: Session, schedule: LeasePaymentSchedule, now: datetime
    ) -> None:
        if schedule.id is None:
            raise NotFoundError(f"Schedule for lease {schedule.lease_id} has not been created")
        statement = (
            update(PaymentScheduleRecord)
            .where(PaymentScheduleRecord.id == schedule.id)
            .where(PaymentScheduleRecord.version == schedule.version)
            .values(
                version=schedule.version + 1,
                updated_at=now,
                **_document_values(schedule),
            )
        )
        result = session.connection().execute(statement)
        if result.rowcount == 1:
            return
        if session.get(PaymentScheduleRecord, schedule.id) is None:
            raise NotFoundError(f"Schedule {schedule.id} not found")
        raise ConflictError(
            f"Schedule {schedule.id} was modified concurrently (expected version {schedule.version})"
        )


__all__ = ["SQLModelScheduleRepository", "to_domain"]
