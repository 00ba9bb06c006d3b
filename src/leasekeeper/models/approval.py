"""Payment edit approval requests."""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Optional

from sqlalchemy import JSON, Column, Index, text
from sqlmodel import Field, SQLModel

from .schedule import _utcnow, new_id


class PaymentApprovalRequest(SQLModel, table=True):
    """A standard user's proposed payment edit awaiting review."""

    __tablename__: ClassVar[str] = "payment_approval"
    # At most one pending request per obligation.
    __table_args__: ClassVar[tuple] = (
        Index(
            "uq_payment_approval_pending",
            "schedule_id",
            "month_key",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    schedule_id: str = Field(
        foreign_key="payment_schedule.id", nullable=False, index=True, max_length=32
    )
    month_key: str = Field(nullable=False, max_length=32)
    original_values: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    proposed_values: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column(JSON, nullable=False)
    )
    edited_by: str = Field(nullable=False, max_length=64)
    edited_at: datetime = Field(default_factory=_utcnow, nullable=False, index=True)
    status: str = Field(default="pending", nullable=False, index=True, max_length=16)
    reviewed_by: Optional[str] = Field(default=None, max_length=64)
    reviewed_at: Optional[datetime] = Field(default=None)
    review_notes: Optional[str] = Field(default=None, max_length=500)
