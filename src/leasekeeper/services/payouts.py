"""Deposit payout at lease end."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ..domain.money import ZERO, MoneyLike, non_negative, sum_money, to_money
from ..domain.repositories.maintenance import MaintenanceExpenseRepository
from ..domain.repositories.payout import PayoutRepository
from ..domain.repositories.schedule import ScheduleRepository
from ..domain.schedule import (
    DEPOSIT_PAYOUT_SUFFIX,
    Obligation,
    ObligationKind,
    ObligationStatus,
    month_key_for,
)
from ..domain.settings import Actor
from ..errors import ConflictError, ValidationError
from ..logging_config import get_logger
from ..models.maintenance import MaintenanceRoomCost
from ..models.payout import DepositPayoutRecord
from .schedules import get_schedule_for_lease

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PayoutQuote:
    deposit_amount: Decimal
    recoverable_costs: Decimal
    manual_deduction: Decimal
    deduction_amount: Decimal
    payout_amount: Decimal
    uncollected_amount: Decimal


def calculate_payout(
    deposit: MoneyLike,
    recoverable_costs: Iterable[MoneyLike],
    manual_deduction: MoneyLike = ZERO,
) -> PayoutQuote:
    """Net the deposit against recoverable costs and a manual deduction.

    The payout never goes below zero; any excess deduction is reported as
    ``uncollected_amount``.
    """

    deposit_amount = non_negative(deposit, field="deposit_amount")
    costs = sum_money(non_negative(cost, field="recoverable cost") for cost in recoverable_costs)
    manual = non_negative(manual_deduction, field="manual_deduction")
    deduction = to_money(costs + manual)
    return PayoutQuote(
        deposit_amount=deposit_amount,
        recoverable_costs=costs,
        manual_deduction=manual,
        deduction_amount=deduction,
        payout_amount=max(ZERO, to_money(deposit_amount - deduction)),
        uncollected_amount=max(ZERO, to_money(deduction - deposit_amount)),
    )


def _selected_costs(
    maintenance: MaintenanceExpenseRepository, cost_ids: Sequence[int], room_id: str
) -> list[MaintenanceRoomCost]:
    costs = maintenance.get_costs(cost_ids)
    found = {cost.id for cost in costs}
    missing = [cost_id for cost_id in cost_ids if cost_id not in found]
    if missing:
        raise ValidationError(f"Unknown maintenance cost lines: {missing}")
    for cost in costs:
        if cost.room_id != room_id:
            raise ValidationError(f"Cost line {cost.id} belongs to room {cost.room_id}, not {room_id}")
        if not cost.recover_from_deposit:
            raise ValidationError(f"Cost line {cost.id} is not flagged for recovery from the deposit")
    return costs


def process_deposit_payout(
    *,
    schedules: ScheduleRepository,
    payouts: PayoutRepository,
    maintenance: MaintenanceExpenseRepository,
    lease_id: str,
    deposit_amount: MoneyLike,
    cost_ids: Sequence[int] = (),
    manual_deduction: MoneyLike = ZERO,
    deduction_reason: Optional[str] = None,
    payout_date: date,
    payout_method: str,
    actor: Actor,
) -> DepositPayoutRecord:
    """Settle a lease's deposit and record the payout.

    A positive payout is also appended to the lease's schedule as a paid
    ``deposit_payout`` obligation. The schedule is written before the payout
    record so that a retry after a failure completes the record without
    duplicating the obligation.
    """

    if payouts.get_by_lease_id(lease_id) is not None:
        raise ConflictError(f"Deposit for lease {lease_id} was already paid out")
    if not payout_method.strip():
        raise ValidationError("payout_method is required")

    schedule = get_schedule_for_lease(schedules, lease_id)
    cost_ids = list(dict.fromkeys(cost_ids))
    costs = _selected_costs(maintenance, cost_ids, schedule.room_id)
    quote = calculate_payout(deposit_amount, [cost.amount for cost in costs], manual_deduction)

    month_key = f"{month_key_for(payout_date)}{DEPOSIT_PAYOUT_SUFFIX}"
    if quote.payout_amount > ZERO and not schedule.has(month_key):
        schedule.append(
            Obligation(
                month_key=month_key,
                due_date=payout_date,
                amount=quote.payout_amount,
                kind=ObligationKind.DEPOSIT_PAYOUT,
                status=ObligationStatus.PAID,
                paid_amount=quote.payout_amount,
                paid_date=payout_date,
                payment_method=payout_method,
                edited_by=actor.user_id,
            )
        )
        schedules.save(schedule)

    record = payouts.create(
        DepositPayoutRecord(
            lease_id=lease_id,
            schedule_id=schedule.id,
            deposit_amount=quote.deposit_amount,
            deduction_amount=quote.deduction_amount,
            payout_amount=quote.payout_amount,
            uncollected_amount=quote.uncollected_amount,
            deduction_reason=deduction_reason,
            maintenance_cost_ids=cost_ids,
            payout_date=payout_date,
            payout_method=payout_method,
            processed_by=actor.user_id,
        )
    )
    logger.info(
        "Deposit payout processed",
        extra={
            "lease_id": lease_id,
            "payout_amount": str(quote.payout_amount),
            "deduction_amount": str(quote.deduction_amount),
            "uncollected_amount": str(quote.uncollected_amount),
            "actor": actor.user_id,
        },
    )
    if quote.uncollected_amount > ZERO:
        logger.warning(
            "Deductions exceed the deposit",
            extra={"lease_id": lease_id, "uncollected_amount": str(quote.uncollected_amount)},
        )
    return record


__all__ = ["PayoutQuote", "calculate_payout", "process_deposit_payout"]
