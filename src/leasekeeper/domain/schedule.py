"""Lease payment schedule entities.

A schedule is the unit of atomicity: one document per lease holding its
ordered obligations, the aggregated penalty balance and running totals.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from ..errors import NotFoundError, ValidationError
from .money import ZERO, optional_money, sum_money, to_money

MONTHLY_KEY_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
DEPOSIT_SUFFIX = "-deposit"
DEPOSIT_PAYOUT_SUFFIX = "-deposit-payout"


class DueDatePolicy(str, Enum):
    """Organization-wide rule placing each monthly due date."""

    FIRST_DAY = "first_day"
    LAST_DAY = "last_day"


class ObligationKind(str, Enum):
    RENT = "rent"
    DEPOSIT = "deposit"
    LATE_FEE = "late_fee"
    DEPOSIT_PAYOUT = "deposit_payout"
    MAINTENANCE = "maintenance"
    PENALTY = "penalty"


class ObligationStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    PARTIAL = "partial"
    PENDING_APPROVAL = "pending_approval"


# Fields captured when an obligation's payment details are snapshotted.
FINANCIAL_FIELDS = ("paid_amount", "paid_date", "payment_method", "proof_ref")


def month_key_for(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def is_monthly_key(key: str) -> bool:
    """Return True for ``YYYY-MM`` keys; synthetic keys return False."""

    return MONTHLY_KEY_PATTERN.match(key) is not None


def parse_month_key(key: str) -> tuple[int, int]:
    """Split a ``YYYY-MM`` key into ``(year, month)``."""

    match = MONTHLY_KEY_PATTERN.match(key or "")
    if not match:
        raise ValidationError(f"Invalid month key: {key!r} (expected YYYY-MM)")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month key: {key!r} (month must be 01-12)")
    return year, month


def settlement_status(paid_amount: Optional[Decimal], amount: Decimal) -> ObligationStatus:
    """Status of an obligation once a payment has been applied to it."""

    if paid_amount is not None and paid_amount >= amount:
        return ObligationStatus.PAID
    return ObligationStatus.PARTIAL


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _compact(document: dict[str, Any]) -> dict[str, Any]:
    """Drop unset entries; a missing key always means "unset"."""

    return {key: value for key, value in document.items() if value is not None}


@dataclass(slots=True)
class Obligation:
    """One scheduled charge line within a lease's payment schedule."""

    month_key: str
    due_date: date
    amount: Decimal
    kind: ObligationKind
    status: ObligationStatus = ObligationStatus.PENDING
    paid_amount: Optional[Decimal] = None
    paid_date: Optional[date] = None
    payment_method: Optional[str] = None
    proof_ref: Optional[str] = None
    edited_by: Optional[str] = None
    edited_at: Optional[datetime] = None
    original_values: Optional[dict[str, Any]] = None

    @property
    def is_monthly(self) -> bool:
        return is_monthly_key(self.month_key)

    def snapshot(self) -> dict[str, Any]:
        """Serialized payment details plus status, used for review snapshots."""

        return {
            "paid_amount": str(self.paid_amount) if self.paid_amount is not None else None,
            "paid_date": _iso(self.paid_date),
            "payment_method": self.payment_method,
            "proof_ref": self.proof_ref,
            "status": self.status.value,
        }

    def clear_payment(self) -> None:
        """Reset payment details to unset."""

        for name in FINANCIAL_FIELDS:
            setattr(self, name, None)

    def stamp(self, actor_id: str, at: datetime) -> None:
        self.edited_by = actor_id
        self.edited_at = at

    def to_document(self) -> dict[str, Any]:
        return _compact(
            {
                "month_key": self.month_key,
                "due_date": self.due_date.isoformat(),
                "amount": str(self.amount),
                "kind": self.kind.value,
                "status": self.status.value,
                "paid_amount": str(self.paid_amount) if self.paid_amount is not None else None,
                "paid_date": _iso(self.paid_date),
                "payment_method": self.payment_method,
                "proof_ref": self.proof_ref,
                "edited_by": self.edited_by,
                "edited_at": self.edited_at.isoformat() if self.edited_at else None,
                "original_values": self.original_values,
            }
        )

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Obligation":
        return cls(
            month_key=document["month_key"],
            due_date=date.fromisoformat(document["due_date"]),
            amount=to_money(document["amount"]),
            kind=ObligationKind(document["kind"]),
            status=ObligationStatus(document.get("status", ObligationStatus.PENDING.value)),
            paid_amount=optional_money(document.get("paid_amount")),
            paid_date=_parse_date(document.get("paid_date")),
            payment_method=document.get("payment_method"),
            proof_ref=document.get("proof_ref"),
            edited_by=document.get("edited_by"),
            edited_at=_parse_datetime(document.get("edited_at")),
            original_values=document.get("original_values"),
        )


@dataclass(slots=True)
class PenaltyAccrual:
    """One append-only entry in a penalty balance's history."""

    date: datetime
    amount_added: Decimal
    basis: dict[str, Any] = field(default_factory=dict)

    def to_document(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "amount_added": str(self.amount_added),
            "basis": self.basis,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "PenaltyAccrual":
        return cls(
            date=datetime.fromisoformat(document["date"]),
            amount_added=to_money(document["amount_added"]),
            basis=dict(document.get("basis") or {}),
        )


@dataclass(slots=True)
class AggregatedPenalty:
    """Running late-penalty balance for one schedule.

    ``total_amount`` only ever grows through :meth:`add`; payments move
    ``paid_amount`` and the outstanding balance follows.
    """

    total_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    outstanding_amount: Decimal = ZERO
    last_calculated: Optional[datetime] = None
    calculation_history: list[PenaltyAccrual] = field(default_factory=list)

    def add(self, accrual: PenaltyAccrual) -> None:
        if accrual.amount_added <= ZERO:
            raise ValidationError("Penalty accruals must be positive")
        self.calculation_history.append(accrual)
        self.total_amount = to_money(self.total_amount + accrual.amount_added)
        self.last_calculated = accrual.date
        self._recompute()

    def apply_payment(self, amount: Decimal) -> None:
        self.paid_amount = min(to_money(self.paid_amount + amount), self.total_amount)
        self._recompute()

    def accrued_for(self, month_key: str) -> Decimal:
        """Penalty already charged for *month_key* across the history."""

        amounts = []
        for entry in self.calculation_history:
            detail = (entry.basis.get("obligations") or {}).get(month_key)
            if detail:
                amounts.append(to_money(detail["amount"]))
        return sum_money(amounts)

    def _recompute(self) -> None:
        self.outstanding_amount = to_money(self.total_amount - self.paid_amount)

    def to_document(self) -> dict[str, Any]:
        return _compact(
            {
                "total_amount": str(self.total_amount),
                "paid_amount": str(self.paid_amount),
                "outstanding_amount": str(self.outstanding_amount),
                "last_calculated": self.last_calculated.isoformat() if self.last_calculated else None,
                "calculation_history": [entry.to_document() for entry in self.calculation_history],
            }
        )

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "AggregatedPenalty":
        penalty = cls(
            total_amount=to_money(document.get("total_amount", "0")),
            paid_amount=to_money(document.get("paid_amount", "0")),
            last_calculated=_parse_datetime(document.get("last_calculated")),
            calculation_history=[
                PenaltyAccrual.from_document(entry)
                for entry in document.get("calculation_history") or []
            ],
        )
        penalty._recompute()
        return penalty


@dataclass(slots=True)
class LeasePaymentSchedule:
    """Ordered obligations and running totals for one lease."""

    lease_id: str
    facility_id: str
    room_id: str
    renter_id: str
    due_date_policy: Optional[DueDatePolicy]
    obligations: list[Obligation] = field(default_factory=list)
    aggregated_penalty: Optional[AggregatedPenalty] = None
    total_amount: Decimal = ZERO
    total_paid: Decimal = ZERO
    outstanding_amount: Decimal = ZERO
    id: Optional[str] = None
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def find(self, month_key: str) -> Obligation:
        for obligation in self.obligations:
            if obligation.month_key == month_key:
                return obligation
        raise NotFoundError(f"No obligation {month_key!r} in schedule {self.id}")

    def has(self, month_key: str) -> bool:
        return any(obligation.month_key == month_key for obligation in self.obligations)

    def append(self, obligation: Obligation) -> None:
        if self.has(obligation.month_key):
            raise ValidationError(
                f"Obligation {obligation.month_key!r} already exists in schedule {self.id}"
            )
        self.obligations.append(obligation)
        self.recompute_totals()

    def recompute_totals(self) -> None:
        """Re-derive totals from the obligations; never adjusted incrementally."""

        self.total_amount = sum_money(obligation.amount for obligation in self.obligations)
        self.total_paid = sum_money(obligation.paid_amount for obligation in self.obligations)
        self.outstanding_amount = to_money(self.total_amount - self.total_paid)

    def obligations_document(self) -> list[dict[str, Any]]:
        return [obligation.to_document() for obligation in self.obligations]


__all__ = [
    "AggregatedPenalty",
    "DueDatePolicy",
    "FINANCIAL_FIELDS",
    "LeasePaymentSchedule",
    "Obligation",
    "ObligationKind",
    "ObligationStatus",
    "PenaltyAccrual",
    "DEPOSIT_SUFFIX",
    "DEPOSIT_PAYOUT_SUFFIX",
    "is_monthly_key",
    "month_key_for",
    "parse_month_key",
    "settlement_status",
]
