"""Stored lease payment schedule documents."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, ClassVar, Optional
from uuid import uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class PaymentScheduleRecord(SQLModel, table=True):
    """One row per lease; obligations and penalty balance live in JSON columns."""

    __tablename__: ClassVar[str] = "payment_schedule"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    lease_id: str = Field(nullable=False, unique=True, index=True, max_length=64)
    facility_id: str = Field(nullable=False, index=True, max_length=64)
    room_id: str = Field(nullable=False, index=True, max_length=64)
    renter_id: str = Field(nullable=False, max_length=64)
    due_date_policy: Optional[str] = Field(default=None, max_length=16)
    obligations: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    aggregated_penalty: Optional[dict[str, Any]] = Field(
        default=None, sa_column=Column(JSON, nullable=True)
    )
    total_amount: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    total_paid: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)
    outstanding_amount: Decimal = Field(
        default=Decimal("0.00"), max_digits=12, decimal_places=2
    )
    version: int = Field(default=0, nullable=False)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=_utcnow, nullable=False)
