"""Organization settings, business rules and acting users."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from ..errors import ValidationError
from .money import ZERO, non_negative
from .schedule import DueDatePolicy


class Role(str, Enum):
    SYSTEM_ADMIN = "system_admin"
    STANDARD_USER = "standard_user"


@dataclass(frozen=True, slots=True)
class Actor:
    """User performing an operation."""

    user_id: str
    role: Role

    @property
    def is_privileged(self) -> bool:
        if self.role is Role.SYSTEM_ADMIN:
            return True
        if self.role is Role.STANDARD_USER:
            return False
        raise ValidationError(f"Unknown role: {self.role!r}")


SYSTEM_ACTOR = Actor(user_id="system", role=Role.SYSTEM_ADMIN)


@dataclass(frozen=True, slots=True)
class BusinessRules:
    """Late-fee and surcharge rules applied to a facility's leases."""

    late_fee_amount: Decimal = Decimal("50.00")
    late_fee_start_day: int = 4
    grace_period_days: int = 2
    child_surcharge: Decimal = Decimal("10.00")

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "late_fee_amount", non_negative(self.late_fee_amount, field="late_fee_amount")
        )
        object.__setattr__(
            self, "child_surcharge", non_negative(self.child_surcharge, field="child_surcharge")
        )
        if self.late_fee_start_day < 0:
            raise ValidationError("late_fee_start_day cannot be negative")
        if self.grace_period_days < 0:
            raise ValidationError("grace_period_days cannot be negative")

    def as_basis(self) -> dict[str, str | int]:
        """JSON-able copy recorded alongside each penalty accrual."""

        return {
            "late_fee_amount": str(self.late_fee_amount),
            "late_fee_start_day": self.late_fee_start_day,
            "grace_period_days": self.grace_period_days,
        }


@dataclass(slots=True)
class OrganizationSettings:
    due_date_policy: DueDatePolicy = DueDatePolicy.FIRST_DAY
    allow_standard_user_past_payments: bool = False
    max_past_payment_days: int = 30
    default_rules: BusinessRules = field(default_factory=BusinessRules)


@dataclass(slots=True)
class LeaseTerms:
    """Lease facts needed to generate a payment schedule."""

    lease_id: str
    facility_id: str
    room_id: str
    renter_id: str
    start_date: date
    end_date: date
    monthly_rent: Decimal
    deposit_amount: Decimal = ZERO
    deposit_paid: bool = False
    deposit_paid_date: Optional[date] = None
    deposit_payment_method: Optional[str] = None
    children_count: int = 0

    def __post_init__(self) -> None:
        self.monthly_rent = non_negative(self.monthly_rent, field="monthly_rent")
        self.deposit_amount = non_negative(self.deposit_amount, field="deposit_amount")
        if self.end_date < self.start_date:
            raise ValidationError(
                f"Lease {self.lease_id} ends ({self.end_date}) before it starts ({self.start_date})"
            )
        if self.children_count < 0:
            raise ValidationError("children_count cannot be negative")


__all__ = [
    "Actor",
    "BusinessRules",
    "LeaseTerms",
    "OrganizationSettings",
    "Role",
    "SYSTEM_ACTOR",
]
