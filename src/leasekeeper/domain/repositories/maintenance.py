"""Maintenance expense repository protocol."""

from __future__ import annotations

from typing import Iterable, Protocol

from ...models.maintenance import MaintenanceExpense, MaintenanceRoomCost


class MaintenanceExpenseRepository(Protocol):
    """Repository for maintenance expenses and their room cost lines."""

    def create(self, expense: MaintenanceExpense) -> MaintenanceExpense:
        """Insert an expense together with its room cost lines."""
        ...

    def list_recoverable_costs(self, room_id: str) -> list[MaintenanceRoomCost]:
        """Cost lines for *room_id* flagged for recovery from the deposit."""
        ...

    def get_costs(self, cost_ids: Iterable[int]) -> list[MaintenanceRoomCost]:
        """Retrieve cost lines by ID."""
        ...
