"""Due date placement for monthly obligations."""

from __future__ import annotations

from calendar import monthrange
from datetime import date

from ..domain.schedule import DueDatePolicy, parse_month_key
from ..errors import ValidationError


def coerce_policy(value: DueDatePolicy | str) -> DueDatePolicy:
    try:
        return DueDatePolicy(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown due date policy: {value!r}") from exc


def due_date(year: int, month: int, policy: DueDatePolicy) -> date:
    """Return the due date of *year*-*month* under *policy*.

    ``first_day`` is the 1st of the month; ``last_day`` is the month's final
    calendar day, leap years included.
    """

    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}")
    policy = coerce_policy(policy)
    if policy is DueDatePolicy.FIRST_DAY:
        return date(year, month, 1)
    if policy is DueDatePolicy.LAST_DAY:
        return date(year, month, monthrange(year, month)[1])
    raise ValidationError(f"Unknown due date policy: {policy!r}")


def due_date_for_key(month_key: str, policy: DueDatePolicy) -> date:
    """Due date of a ``YYYY-MM`` obligation key."""

    year, month = parse_month_key(month_key)
    return due_date(year, month, policy)


def iter_months(start: date, end: date):
    """Yield ``(year, month)`` from *start*'s month through *end*'s month."""

    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        yield year, month
        month += 1
        if month > 12:
            year, month = year + 1, 1


__all__ = ["coerce_policy", "due_date", "due_date_for_key", "iter_months"]
