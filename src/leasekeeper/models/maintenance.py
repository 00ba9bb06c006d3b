"""Maintenance expenses and their per-room cost lines."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

from .schedule import _utcnow


class MaintenanceExpense(SQLModel, table=True):
    """A maintenance bill for a facility, split across rooms."""

    __tablename__: ClassVar[str] = "maintenance_expense"

    id: Optional[int] = Field(default=None, primary_key=True)
    facility_id: str = Field(nullable=False, index=True, max_length=64)
    description: str = Field(nullable=False, max_length=255)
    total_amount: Decimal = Field(max_digits=12, decimal_places=2)
    expense_date: date = Field(nullable=False)
    created_by: str = Field(nullable=False, max_length=64)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)

    room_costs: list["MaintenanceRoomCost"] = Relationship(
        sa_relationship=relationship(
            "MaintenanceRoomCost",
            back_populates="expense",
            cascade="all, delete-orphan",
            lazy="selectin",
        ),
    )


class MaintenanceRoomCost(SQLModel, table=True):
    """One room's share of a maintenance expense."""

    __tablename__: ClassVar[str] = "maintenance_room_cost"

    id: Optional[int] = Field(default=None, primary_key=True)
    expense_id: Optional[int] = Field(
        default=None, foreign_key="maintenance_expense.id", index=True
    )
    room_id: str = Field(nullable=False, index=True, max_length=64)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    recover_from_deposit: bool = Field(default=False, nullable=False)

    expense: Optional[MaintenanceExpense] = Relationship(
        sa_relationship=relationship("MaintenanceExpense", back_populates="room_costs"),
    )
