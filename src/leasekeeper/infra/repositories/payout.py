"""SQLModel implementation of the deposit payout repository."""

from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ...errors import ConflictError
from ...models.payout import DepositPayoutRecord
from ..database import store_errors


class SQLModelPayoutRepository:
    """SQLModel-based payout repository."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_lease_id(self, lease_id: str) -> Optional[DepositPayoutRecord]:
        """Retrieve the payout of a lease, if processed."""
        with store_errors(), self.session_factory() as session:
            return session.exec(
                select(DepositPayoutRecord).where(DepositPayoutRecord.lease_id == lease_id)
            ).first()

    def create(self, record: DepositPayoutRecord) -> DepositPayoutRecord:
        """Insert a payout; ConflictError if the lease already has one."""
        try:
            with store_errors(), self.session_factory() as session:
                session.add(record)
                session.commit()
                session.refresh(record)
        except IntegrityError as exc:
            raise ConflictError(f"Deposit for lease {record.lease_id} was already paid out") from exc
        return record


__all__ = ["SQLModelPayoutRepository"]
