"""Deposit payout records."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from .schedule import _utcnow, new_id


class DepositPayoutRecord(SQLModel, table=True):
    """Deposit returned to a renter at lease end; at most one per lease."""

    __tablename__: ClassVar[str] = "deposit_payout"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    lease_id: str = Field(nullable=False, unique=True, index=True, max_length=64)
    schedule_id: str = Field(foreign_key="payment_schedule.id", nullable=False, max_length=32)
    deposit_amount: Decimal = Field(max_digits=12, decimal_places=2)
    deduction_amount: Decimal = Field(
        default=Decimal("0.00"), max_digits=12, decimal_places=2
    )
    payout_amount: Decimal = Field(max_digits=12, decimal_places=2)
    # Deductions beyond the deposit; tracked, not billed.
    uncollected_amount: Decimal = Field(
        default=Decimal("0.00"), max_digits=12, decimal_places=2
    )
    deduction_reason: Optional[str] = Field(default=None, max_length=255)
    maintenance_cost_ids: list[int] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    payout_date: date = Field(nullable=False)
    payout_method: str = Field(nullable=False, max_length=32)
    processed_by: str = Field(nullable=False, max_length=64)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)
