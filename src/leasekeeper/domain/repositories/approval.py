"""Approval request repository protocol."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ...models.approval import PaymentApprovalRequest


class ApprovalRepository(Protocol):
    """Repository for payment approval requests."""

    def get_by_id(self, approval_id: str) -> Optional[PaymentApprovalRequest]:
        """Retrieve a request by ID."""
        ...

    def get_pending_for(
        self, schedule_id: str, month_key: str
    ) -> Optional[PaymentApprovalRequest]:
        """Retrieve the pending request for one obligation, if any."""
        ...

    def list_pending(self) -> list[PaymentApprovalRequest]:
        """List pending requests, oldest first."""
        ...

    def count_pending(self, *, since: Optional[datetime] = None) -> int:
        """Count pending requests, optionally only those edited since *since*."""
        ...

    def create(self, request: PaymentApprovalRequest) -> PaymentApprovalRequest:
        """Insert a new request; ConflictError if the obligation already has a pending one."""
        ...

    def mark_reviewed(self, request: PaymentApprovalRequest) -> PaymentApprovalRequest:
        """Record a decision; ConflictError if the request is no longer pending."""
        ...
