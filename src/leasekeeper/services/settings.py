"""Organization settings, business rule resolution and the role boundary."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from ..domain.repositories.directory import LeaseDirectory
from ..domain.repositories.schedule import ScheduleRepository
from ..domain.repositories.settings import SettingsRepository
from ..domain.schedule import DueDatePolicy
from ..domain.settings import Actor, BusinessRules, OrganizationSettings
from ..errors import PolicyViolation, ValidationError
from ..logging_config import get_logger
from .batching import DEFAULT_BATCH_SIZE, BatchRunResult, CancellationToken
from .changes import SETTINGS_TOPIC, ChangeEvent, ChangeFeed
from .due_dates import coerce_policy
from .policy_migration import migrate_due_date_policy

logger = get_logger(__name__)

KEY_DUE_DATE_POLICY = "due_date_policy"
KEY_ALLOW_PAST_PAYMENTS = "allow_standard_user_past_payments"
KEY_MAX_PAST_PAYMENT_DAYS = "max_past_payment_days"
KEY_LATE_FEE_AMOUNT = "late_fee_amount"
KEY_LATE_FEE_START_DAY = "late_fee_start_day"
KEY_GRACE_PERIOD_DAYS = "grace_period_days"
KEY_CHILD_SURCHARGE = "child_surcharge"


def require_privileged(actor: Actor, action: str) -> None:
    """Raise ``PolicyViolation`` unless *actor* may perform *action*."""

    if not actor.is_privileged:
        raise PolicyViolation(f"{action} requires a system administrator (user {actor.user_id})")


def _value(repository: SettingsRepository, key: str) -> Optional[str]:
    setting = repository.get(key)
    return setting.value if setting else None


def _as_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(repository: SettingsRepository) -> OrganizationSettings:
    """Read organization settings, filling gaps with defaults."""

    defaults = OrganizationSettings()
    rules = defaults.default_rules
    try:
        policy = _value(repository, KEY_DUE_DATE_POLICY)
        allow_past = _value(repository, KEY_ALLOW_PAST_PAYMENTS)
        max_days = _value(repository, KEY_MAX_PAST_PAYMENT_DAYS)
        fee = _value(repository, KEY_LATE_FEE_AMOUNT)
        start_day = _value(repository, KEY_LATE_FEE_START_DAY)
        grace = _value(repository, KEY_GRACE_PERIOD_DAYS)
        surcharge = _value(repository, KEY_CHILD_SURCHARGE)
        return OrganizationSettings(
            due_date_policy=coerce_policy(policy) if policy else defaults.due_date_policy,
            allow_standard_user_past_payments=(
                _as_bool(allow_past) if allow_past is not None else defaults.allow_standard_user_past_payments
            ),
            max_past_payment_days=int(max_days) if max_days else defaults.max_past_payment_days,
            default_rules=BusinessRules(
                late_fee_amount=Decimal(fee) if fee else rules.late_fee_amount,
                late_fee_start_day=int(start_day) if start_day else rules.late_fee_start_day,
                grace_period_days=int(grace) if grace else rules.grace_period_days,
                child_surcharge=Decimal(surcharge) if surcharge else rules.child_surcharge,
            ),
        )
    except (ArithmeticError, ValueError) as exc:
        raise ValidationError(f"Invalid organization setting: {exc}") from exc


def resolve_rules(
    facility_id: str,
    *,
    settings: OrganizationSettings,
    directory: Optional[LeaseDirectory] = None,
) -> BusinessRules:
    """Facility rules from the directory, else the organization defaults."""

    if directory is not None:
        rules = directory.business_rules_for(facility_id)
        if rules is not None:
            return rules
    return settings.default_rules


def update_setting(
    *,
    repository: SettingsRepository,
    key: str,
    value: str,
    actor: Actor,
    feed: Optional[ChangeFeed] = None,
    description: str | None = None,
) -> None:
    """Persist one setting and notify subscribers."""

    require_privileged(actor, f"Changing setting {key!r}")
    repository.set(key, value, description)
    logger.info("Setting updated", extra={"key": key, "value": value, "actor": actor.user_id})
    if feed is not None:
        feed.publish(
            ChangeEvent(topic=SETTINGS_TOPIC, key=key, payload={"value": value, "actor": actor.user_id})
        )


def change_due_date_policy(
    *,
    settings_repo: SettingsRepository,
    schedules: ScheduleRepository,
    policy: DueDatePolicy | str,
    actor: Actor,
    today: date,
    feed: Optional[ChangeFeed] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    cancel_token: Optional[CancellationToken] = None,
) -> BatchRunResult:
    """Switch the organization's due date policy and migrate every schedule."""

    policy = coerce_policy(policy)
    update_setting(
        repository=settings_repo,
        key=KEY_DUE_DATE_POLICY,
        value=policy.value,
        actor=actor,
        feed=feed,
        description="Organization-wide due date policy",
    )
    return migrate_due_date_policy(
        repository=schedules,
        policy=policy,
        today=today,
        batch_size=batch_size,
        cancel_token=cancel_token,
    )


__all__ = [
    "KEY_ALLOW_PAST_PAYMENTS",
    "KEY_CHILD_SURCHARGE",
    "KEY_DUE_DATE_POLICY",
    "KEY_GRACE_PERIOD_DAYS",
    "KEY_LATE_FEE_AMOUNT",
    "KEY_LATE_FEE_START_DAY",
    "KEY_MAX_PAST_PAYMENT_DAYS",
    "change_due_date_policy",
    "load_settings",
    "require_privileged",
    "resolve_rules",
    "update_setting",
]
