"""Concrete repository implementations using SQLModel."""

from .approval import SQLModelApprovalRepository
from .maintenance import SQLModelMaintenanceExpenseRepository
from .payout import SQLModelPayoutRepository
from .schedule import SQLModelScheduleRepository
from .settings import SQLModelSettingsRepository

__all__ = [
    "SQLModelApprovalRepository",
    "SQLModelMaintenanceExpenseRepository",
    "SQLModelPayoutRepository",
    "SQLModelScheduleRepository",
    "SQLModelSettingsRepository",
]
