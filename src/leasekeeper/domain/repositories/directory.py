"""Read-only lookups owned by the surrounding lease management system."""

from __future__ import annotations

from typing import Optional, Protocol

from ..settings import BusinessRules


class LeaseDirectory(Protocol):
    """Resolves facility rules and display names for a lease."""

    def business_rules_for(self, facility_id: str) -> Optional[BusinessRules]:
        """Facility rules, or None to fall back to organization defaults."""
        ...

    def display_name(self, lease_id: str) -> Optional[str]:
        """Human readable label used in logs."""
        ...
