"""Maintenance expense allocation across rooms."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from ..domain.money import CENT, ZERO, MoneyLike, non_negative, sum_money
from ..domain.repositories.maintenance import MaintenanceExpenseRepository
from ..domain.settings import Actor
from ..errors import ValidationError
from ..logging_config import get_logger
from ..models.maintenance import MaintenanceExpense, MaintenanceRoomCost

logger = get_logger(__name__)

SPLIT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class RoomAllocation:
    room_id: str
    amount: Decimal


def _distinct_rooms(room_ids: Iterable[str]) -> list[str]:
    rooms = list(room_ids)
    if not rooms:
        raise ValidationError("Select at least one room")
    if len(set(rooms)) != len(rooms):
        raise ValidationError("Each room can only appear once in a split")
    return rooms


def split_equal(total: MoneyLike, room_ids: Sequence[str]) -> list[RoomAllocation]:
    """Split *total* evenly; leftover cents go to the first rooms."""

    amount = non_negative(total, field="total_amount")
    rooms = _distinct_rooms(room_ids)
    cents = int(amount / CENT)
    share, remainder = divmod(cents, len(rooms))
    return [
        RoomAllocation(room_id=room, amount=(share + (1 if index < remainder else 0)) * CENT)
        for index, room in enumerate(rooms)
    ]


def split_custom(total: MoneyLike, amounts: Mapping[str, MoneyLike]) -> list[RoomAllocation]:
    """Validate caller supplied per-room amounts against *total*."""

    expected = non_negative(total, field="total_amount")
    rooms = _distinct_rooms(amounts.keys())
    allocations = [
        RoomAllocation(room_id=room, amount=non_negative(amounts[room], field=f"amount for {room}"))
        for room in rooms
    ]
    allocated = sum_money(allocation.amount for allocation in allocations)
    if abs(allocated - expected) > SPLIT_TOLERANCE:
        raise ValidationError(
            f"Room amounts sum to {allocated}, which does not match the total {expected}"
        )
    return allocations


def record_expense(
    *,
    repository: MaintenanceExpenseRepository,
    facility_id: str,
    description: str,
    total_amount: MoneyLike,
    expense_date: date,
    allocations: Sequence[RoomAllocation],
    actor: Actor,
    recoverable_rooms: Iterable[str] = (),
) -> MaintenanceExpense:
    """Persist an expense with one cost line per allocated room.

    Rooms listed in *recoverable_rooms* have their share flagged for recovery
    from the tenant's deposit at lease end.
    """

    if not description.strip():
        raise ValidationError("Expense description is required")
    total = non_negative(total_amount, field="total_amount")
    if total == ZERO:
        raise ValidationError("Expense total must be greater than zero")
    split_custom(total, {allocation.room_id: allocation.amount for allocation in allocations})
    recoverable = set(recoverable_rooms)
    unknown = recoverable - {allocation.room_id for allocation in allocations}
    if unknown:
        raise ValidationError(f"Recoverable rooms not in the split: {sorted(unknown)}")

    expense = MaintenanceExpense(
        facility_id=facility_id,
        description=description.strip(),
        total_amount=total,
        expense_date=expense_date,
        created_by=actor.user_id,
        room_costs=[
            MaintenanceRoomCost(
                room_id=allocation.room_id,
                amount=allocation.amount,
                recover_from_deposit=allocation.room_id in recoverable,
            )
            for allocation in allocations
        ],
    )
    created = repository.create(expense)
    logger.info(
        "Maintenance expense recorded",
        extra={
            "expense_id": created.id,
            "facility_id": facility_id,
            "total_amount": str(total),
            "rooms": len(allocations),
        },
    )
    return created


def list_recoverable_costs(
    repository: MaintenanceExpenseRepository, room_id: str
) -> list[MaintenanceRoomCost]:
    return repository.list_recoverable_costs(room_id)


__all__ = [
    "RoomAllocation",
    "list_recoverable_costs",
    "record_expense",
    "split_custom",
    "split_equal",
]
