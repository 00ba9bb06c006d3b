"""Dual-control workflow for payment edits.

System administrators edit obligations directly. Edits by standard users
are staged on a ``PaymentApprovalRequest``; the obligation keeps its prior
figures and shows ``pending_approval`` until an administrator reviews the
request. Schedule writes always happen before the request row changes, so a
retried call after a failure picks up where the previous attempt stopped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from ..domain.money import ZERO, optional_money
from ..domain.repositories.approval import ApprovalRepository
from ..domain.repositories.schedule import ScheduleRepository
from ..domain.schedule import (
    LeasePaymentSchedule,
    Obligation,
    ObligationStatus,
    settlement_status,
)
from ..domain.settings import Actor, OrganizationSettings
from ..errors import ConflictError, NotFoundError, PolicyViolation, ValidationError
from ..logging_config import get_logger
from ..models.approval import PaymentApprovalRequest
from .changes import APPROVALS_TOPIC, ChangeEvent, ChangeFeed
from .schedules import get_schedule
from .settings import require_privileged

logger = get_logger(__name__)


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class ReviewDecision(str, Enum):
    APPROVED = "approved"
    DECLINED = "declined"


@dataclass(frozen=True, slots=True)
class ProposedValues:
    """Payment details an actor wants to record on an obligation."""

    paid_amount: Decimal
    paid_date: Optional[date] = None
    payment_method: Optional[str] = None
    proof_ref: Optional[str] = None
    allow_overpayment: bool = False

    def to_document(self) -> dict[str, Any]:
        return {
            "paid_amount": str(self.paid_amount),
            "paid_date": self.paid_date.isoformat() if self.paid_date else None,
            "payment_method": self.payment_method,
            "proof_ref": self.proof_ref,
            "allow_overpayment": self.allow_overpayment,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "ProposedValues":
        paid_date = document.get("paid_date")
        return cls(
            paid_amount=optional_money(document["paid_amount"]),
            paid_date=date.fromisoformat(paid_date) if paid_date else None,
            payment_method=document.get("payment_method"),
            proof_ref=document.get("proof_ref"),
            allow_overpayment=bool(document.get("allow_overpayment", False)),
        )


@dataclass(slots=True)
class EditOutcome:
    schedule: LeasePaymentSchedule
    approval: Optional[PaymentApprovalRequest] = None

    @property
    def applied(self) -> bool:
        """True when the edit took effect without review."""
        return self.approval is None


@dataclass(frozen=True, slots=True)
class ApprovalStats:
    total_pending: int
    pending_today: int
    pending_last_7_days: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_decision(decision: ReviewDecision | str) -> ReviewDecision:
    try:
        return ReviewDecision(decision)
    except ValueError as exc:
        raise ValidationError(f"Unknown review decision: {decision!r}") from exc


def _validate_proposal(
    proposed: ProposedValues,
    obligation: Obligation,
    *,
    actor: Actor,
    settings: OrganizationSettings,
    today: date,
) -> None:
    if proposed.paid_amount is None:
        raise ValidationError("paid_amount is required")
    amount = optional_money(proposed.paid_amount)
    if amount < ZERO:
        raise ValidationError(f"paid_amount cannot be negative (got {amount})")
    if amount > obligation.amount and not proposed.allow_overpayment:
        raise ValidationError(
            f"paid_amount {amount} exceeds amount due {obligation.amount}; "
            "set allow_overpayment to record an overpayment"
        )
    if proposed.paid_date is not None:
        if proposed.paid_date > today:
            raise ValidationError(f"Payment date {proposed.paid_date} is in the future")
        if proposed.paid_date < today and not actor.is_privileged:
            if not settings.allow_standard_user_past_payments:
                raise PolicyViolation("Standard users cannot record past-dated payments")
            days_back = (today - proposed.paid_date).days
            if days_back > settings.max_past_payment_days:
                raise PolicyViolation(
                    f"Payment date is {days_back} days in the past; "
                    f"the limit is {settings.max_past_payment_days} days"
                )


def _apply(obligation: Obligation, proposed: ProposedValues, editor: str, at: datetime) -> None:
    obligation.paid_amount = optional_money(proposed.paid_amount)
    obligation.paid_date = proposed.paid_date
    obligation.payment_method = proposed.payment_method
    obligation.proof_ref = proposed.proof_ref
    obligation.status = settlement_status(obligation.paid_amount, obligation.amount)
    obligation.original_values = None
    obligation.stamp(editor, at)


def _publish(feed: Optional[ChangeFeed], request: PaymentApprovalRequest) -> None:
    if feed is None:
        return
    feed.publish(
        ChangeEvent(
            topic=APPROVALS_TOPIC,
            key=request.id,
            payload={
                "schedule_id": request.schedule_id,
                "month_key": request.month_key,
                "status": request.status,
            },
        )
    )


def submit_edit(
    *,
    schedules: ScheduleRepository,
    approvals: ApprovalRepository,
    schedule_id: str,
    month_key: str,
    proposed: ProposedValues,
    actor: Actor,
    settings: OrganizationSettings,
    today: date,
    now: Optional[datetime] = None,
    feed: Optional[ChangeFeed] = None,
) -> EditOutcome:
    """Record payment details on one obligation, directly or via review."""

    now = now or _utcnow()
    schedule = get_schedule(schedules, schedule_id)
    obligation = schedule.find(month_key)
    _validate_proposal(proposed, obligation, actor=actor, settings=settings, today=today)

    if approvals.get_pending_for(schedule_id, month_key) is not None:
        raise ConflictError(f"An edit of {month_key} is already awaiting approval")

    if actor.is_privileged:
        _apply(obligation, proposed, actor.user_id, now)
        schedule.recompute_totals()
        saved = schedules.save(schedule)
        logger.info(
            "Payment edited",
            extra={"schedule_id": schedule_id, "month_key": month_key, "actor": actor.user_id},
        )
        return EditOutcome(schedule=saved)

    # A previous attempt may have saved the schedule without creating the
    # request; its snapshot still holds the pre-edit values.
    if obligation.status is ObligationStatus.PENDING_APPROVAL and obligation.original_values:
        original = obligation.original_values
    else:
        original = obligation.snapshot()
        obligation.original_values = original
        obligation.status = ObligationStatus.PENDING_APPROVAL
        obligation.stamp(actor.user_id, now)
        schedule.recompute_totals()
        schedule = schedules.save(schedule)

    request = approvals.create(
        PaymentApprovalRequest(
            schedule_id=schedule_id,
            month_key=month_key,
            original_values=original,
            proposed_values=proposed.to_document(),
            edited_by=actor.user_id,
            edited_at=now,
            status=ApprovalStatus.PENDING.value,
        )
    )
    logger.info(
        "Payment edit submitted for approval",
        extra={
            "approval_id": request.id,
            "schedule_id": schedule_id,
            "month_key": month_key,
            "actor": actor.user_id,
        },
    )
    _publish(feed, request)
    return EditOutcome(schedule=schedule, approval=request)


def review(
    *,
    schedules: ScheduleRepository,
    approvals: ApprovalRepository,
    approval_id: str,
    decision: ReviewDecision | str,
    reviewer: Actor,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
    feed: Optional[ChangeFeed] = None,
) -> PaymentApprovalRequest:
    """Approve or decline a pending edit."""

    require_privileged(reviewer, "Reviewing payment edits")
    decision = _coerce_decision(decision)
    if decision is ReviewDecision.DECLINED and not (notes or "").strip():
        raise ValidationError("Declining an edit requires review notes")

    request = approvals.get_by_id(approval_id)
    if request is None:
        raise NotFoundError(f"Approval request {approval_id} not found")
    if request.status != ApprovalStatus.PENDING.value:
        raise ConflictError(f"Approval request {approval_id} is already {request.status}")

    now = now or _utcnow()
    schedule = get_schedule(schedules, request.schedule_id)
    obligation = schedule.find(request.month_key)

    if obligation.status is ObligationStatus.PENDING_APPROVAL:
        if decision is ReviewDecision.APPROVED:
            proposed = ProposedValues.from_document(request.proposed_values)
            _apply(obligation, proposed, request.edited_by, now)
            status = ApprovalStatus.APPROVED
        elif decision is ReviewDecision.DECLINED:
            obligation.clear_payment()
            obligation.status = ObligationStatus.PENDING
            obligation.original_values = None
            obligation.stamp(reviewer.user_id, now)
            status = ApprovalStatus.DECLINED
        else:
            raise ValidationError(f"Unknown review decision: {decision!r}")
        schedule.recompute_totals()
        schedules.save(schedule)
    else:
        status = ApprovalStatus(decision.value)

    request.status = status.value
    request.reviewed_by = reviewer.user_id
    request.reviewed_at = now
    request.review_notes = notes
    reviewed = approvals.mark_reviewed(request)
    logger.info(
        "Payment edit reviewed",
        extra={
            "approval_id": approval_id,
            "decision": status.value,
            "reviewer": reviewer.user_id,
        },
    )
    _publish(feed, reviewed)
    return reviewed


def remove_payment(
    *,
    schedules: ScheduleRepository,
    approvals: ApprovalRepository,
    schedule_id: str,
    month_key: str,
    actor: Actor,
    now: Optional[datetime] = None,
) -> LeasePaymentSchedule:
    """Reset an obligation to pending and clear its payment details."""

    require_privileged(actor, "Removing a payment")
    if approvals.get_pending_for(schedule_id, month_key) is not None:
        raise ConflictError(f"Review the pending edit of {month_key} before removing its payment")
    now = now or _utcnow()
    schedule = get_schedule(schedules, schedule_id)
    obligation = schedule.find(month_key)
    obligation.original_values = obligation.snapshot()
    obligation.clear_payment()
    obligation.status = ObligationStatus.PENDING
    obligation.stamp(actor.user_id, now)
    schedule.recompute_totals()
    saved = schedules.save(schedule)
    logger.info(
        "Payment removed",
        extra={"schedule_id": schedule_id, "month_key": month_key, "actor": actor.user_id},
    )
    return saved


def list_pending_approvals(approvals: ApprovalRepository) -> list[PaymentApprovalRequest]:
    return approvals.list_pending()


def approval_stats(approvals: ApprovalRepository, *, now: Optional[datetime] = None) -> ApprovalStats:
    """Counts shown on the approvals dashboard."""

    now = now or _utcnow()
    start_of_day = datetime.combine(now.date(), datetime.min.time(), tzinfo=now.tzinfo)
    return ApprovalStats(
        total_pending=approvals.count_pending(),
        pending_today=approvals.count_pending(since=start_of_day),
        pending_last_7_days=approvals.count_pending(since=now - timedelta(days=7)),
    )


__all__ = [
    "ApprovalStats",
    "ApprovalStatus",
    "EditOutcome",
    "ProposedValues",
    "ReviewDecision",
    "approval_stats",
    "list_pending_approvals",
    "remove_payment",
    "review",
    "submit_edit",
]
