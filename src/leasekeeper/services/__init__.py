"""Service module exports."""

from . import (
    approvals,
    batching,
    changes,
    due_dates,
    maintenance,
    overdue,
    payouts,
    penalties,
    policy_migration,
    schedules,
    settings,
)

__all__ = [
    "approvals",
    "batching",
    "changes",
    "due_dates",
    "maintenance",
    "overdue",
    "payouts",
    "penalties",
    "policy_migration",
    "schedules",
    "settings",
]
