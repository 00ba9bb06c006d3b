"""SQLModel implementation of the maintenance expense repository."""

from __future__ import annotations

from typing import Callable, Iterable

from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from ...models.maintenance import MaintenanceExpense, MaintenanceRoomCost
from ..database import store_errors


class SQLModelMaintenanceExpenseRepository:
    """SQLModel-based maintenance expense repository."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def create(self, expense: MaintenanceExpense) -> MaintenanceExpense:
        """Insert an expense together with its room cost lines."""
        with store_errors(), self.session_factory() as session:
            session.add(expense)
            session.commit()
            statement = (
                select(MaintenanceExpense)
                .options(selectinload(MaintenanceExpense.room_costs))
                .where(MaintenanceExpense.id == expense.id)
            )
            return session.exec(statement).one()

    def list_recoverable_costs(self, room_id: str) -> list[MaintenanceRoomCost]:
        """Cost lines for *room_id* flagged for recovery from the deposit."""
        with store_errors(), self.session_factory() as session:
            statement = (
                select(MaintenanceRoomCost)
                .where(MaintenanceRoomCost.room_id == room_id)
                .where(MaintenanceRoomCost.recover_from_deposit == True)  # noqa: E712
                .order_by(MaintenanceRoomCost.id)  # type: ignore
            )
            return list(session.exec(statement).all())

    def get_costs(self, cost_ids: Iterable[int]) -> list[MaintenanceRoomCost]:
        """Retrieve cost lines by ID."""
        wanted = list(dict.fromkeys(cost_ids))
        if not wanted:
            return []
        with store_errors(), self.session_factory() as session:
            statement = (
                select(MaintenanceRoomCost)
                .where(MaintenanceRoomCost.id.in_(wanted))  # type: ignore
                .order_by(MaintenanceRoomCost.id)  # type: ignore
            )
            return list(session.exec(statement).all())


__all__ = ["SQLModelMaintenanceExpenseRepository"]
