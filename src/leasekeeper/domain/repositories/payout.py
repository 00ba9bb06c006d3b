"""Deposit payout repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.payout import DepositPayoutRecord


class PayoutRepository(Protocol):
    """Repository for deposit payout records."""

    def get_by_lease_id(self, lease_id: str) -> Optional[DepositPayoutRecord]:
        """Retrieve the payout of a lease, if processed."""
        ...

    def create(self, record: DepositPayoutRecord) -> DepositPayoutRecord:
        """Insert a payout; ConflictError if the lease already has one."""
        ...
