"""Error taxonomy shared by every payment engine operation."""

from __future__ import annotations


class LeaseKeeperError(Exception):
    """Base class for errors raised by the payment engine."""

    retryable = False


class ValidationError(LeaseKeeperError):
    """Input was malformed; nothing was written."""


class ConflictError(LeaseKeeperError):
    """A duplicate request or a lost optimistic-concurrency race."""


class NotFoundError(LeaseKeeperError):
    """Unknown schedule, obligation, approval or payout."""


class PolicyViolation(LeaseKeeperError):
    """The acting user is not allowed to perform the operation."""


class StoreUnavailable(LeaseKeeperError):
    """Transient store failure. Safe to retry."""

    retryable = True


__all__ = [
    "LeaseKeeperError",
    "ValidationError",
    "ConflictError",
    "NotFoundError",
    "PolicyViolation",
    "StoreUnavailable",
]
