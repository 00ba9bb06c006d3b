"""SQLModel table exports."""

from .approval import PaymentApprovalRequest
from .maintenance import MaintenanceExpense, MaintenanceRoomCost
from .payout import DepositPayoutRecord
from .schedule import PaymentScheduleRecord
from .settings import AppSetting

__all__ = [
    "AppSetting",
    "DepositPayoutRecord",
    "MaintenanceExpense",
    "MaintenanceRoomCost",
    "PaymentApprovalRequest",
    "PaymentScheduleRecord",
]
