"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from sqlmodel import Session

from .config import BaseConfig
from .domain.repositories.directory import LeaseDirectory
from .domain.settings import OrganizationSettings
from .infra.database import bootstrap_database
from .infra.repositories import (
    SQLModelApprovalRepository,
    SQLModelMaintenanceExpenseRepository,
    SQLModelPayoutRepository,
    SQLModelScheduleRepository,
    SQLModelSettingsRepository,
)
from .services.changes import CallbackChangeFeed
from .services.settings import load_settings


@dataclass
class AppContext:
    """Centralized application context with repositories and collaborators."""

    # Configuration
    config: BaseConfig

    # Session factory
    session_factory: Callable[[], Session]

    # Repositories
    schedule_repo: SQLModelScheduleRepository
    approval_repo: SQLModelApprovalRepository
    payout_repo: SQLModelPayoutRepository
    maintenance_repo: SQLModelMaintenanceExpenseRepository
    settings_repo: SQLModelSettingsRepository

    # Notifications
    change_feed: CallbackChangeFeed

    # Read-only lease directory supplied by the host application
    directory: Optional[LeaseDirectory] = None

    def organization_settings(self) -> OrganizationSettings:
        """Current organization settings, read fresh from the store."""
        return load_settings(self.settings_repo)


def create_app_context(
    config: Optional[BaseConfig] = None, *, directory: Optional[LeaseDirectory] = None
) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()

    session_factory = bootstrap_database(config).session_factory

    return AppContext(
        config=config,
        session_factory=session_factory,
        schedule_repo=SQLModelScheduleRepository(session_factory),
        approval_repo=SQLModelApprovalRepository(session_factory),
        payout_repo=SQLModelPayoutRepository(session_factory),
        maintenance_repo=SQLModelMaintenanceExpenseRepository(session_factory),
        settings_repo=SQLModelSettingsRepository(session_factory),
        change_feed=CallbackChangeFeed(),
        directory=directory,
    )
