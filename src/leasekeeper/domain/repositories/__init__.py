"""Repository protocols for the payment engine."""

from .approval import ApprovalRepository
from .directory import LeaseDirectory
from .maintenance import MaintenanceExpenseRepository
from .payout import PayoutRepository
from .schedule import ScheduleRepository, ScheduleScan
from .settings import SettingsRepository

__all__ = [
    "ApprovalRepository",
    "LeaseDirectory",
    "MaintenanceExpenseRepository",
    "PayoutRepository",
    "ScheduleRepository",
    "ScheduleScan",
    "SettingsRepository",
]
