from __future__ import annotations

from datetime import date

import pytest

from leasekeeper.domain.schedule import DueDatePolicy, ObligationStatus
from leasekeeper.errors import PolicyViolation
from leasekeeper.services.changes import SETTINGS_TOPIC, CallbackChangeFeed
from leasekeeper.services.overdue import run_overdue_sweep
from leasekeeper.services.policy_migration import (
    backfill_due_date_policy,
    migrate_due_date_policy,
    preview_policy_change,
)
from leasekeeper.services.settings import change_due_date_policy, load_settings

TODAY = date(2025, 2, 5)


@pytest.fixture
def swept_schedule(schedule_factory, schedule_repo, org_settings):
    schedule = schedule_factory()
    run_overdue_sweep(repository=schedule_repo, settings=org_settings, today=TODAY)
    return schedule_repo.get_by_id(schedule.id)


def test_switch_to_last_day_moves_february_back_to_pending(swept_schedule, schedule_repo):
    assert swept_schedule.find("2025-02").status is ObligationStatus.OVERDUE

    result = migrate_due_date_policy(
        repository=schedule_repo, policy=DueDatePolicy.LAST_DAY, today=TODAY
    )

    migrated = schedule_repo.get_by_id(swept_schedule.id)
    february = migrated.find("2025-02")
    assert february.due_date == date(2025, 2, 28)
    assert february.status is ObligationStatus.PENDING
    january = migrated.find("2025-01")
    assert january.due_date == date(2025, 1, 31)
    assert january.status is ObligationStatus.OVERDUE
    assert migrated.find("2025-01-deposit").due_date == date(2025, 1, 1)
    assert migrated.due_date_policy is DueDatePolicy.LAST_DAY
    assert result.updated_schedules == 1
    assert result.updated_obligations == 12


def test_preview_reports_changes_without_writing(swept_schedule, schedule_repo):
    preview = preview_policy_change(
        repository=schedule_repo, policy=DueDatePolicy.LAST_DAY, today=TODAY
    )

    assert preview.total_schedules == 1
    assert preview.schedules_to_update == 1
    assert preview.payments_to_update == 12
    assert preview.status_changes == {"overdue_to_pending": 1, "pending_to_overdue": 0}
    untouched = schedule_repo.get_by_id(swept_schedule.id)
    assert untouched.version == swept_schedule.version
    assert untouched.find("2025-02").status is ObligationStatus.OVERDUE


def test_switch_to_first_day_marks_past_due_pending_as_overdue(schedule_factory, schedule_repo):
    schedule = schedule_factory()
    migrate_due_date_policy(repository=schedule_repo, policy="last_day", today=date(2025, 1, 10))

    preview = preview_policy_change(repository=schedule_repo, policy="first_day", today=TODAY)
    assert preview.status_changes == {"overdue_to_pending": 0, "pending_to_overdue": 2}

    migrate_due_date_policy(repository=schedule_repo, policy="first_day", today=TODAY)
    migrated = schedule_repo.get_by_id(schedule.id)
    assert migrated.find("2025-01").status is ObligationStatus.OVERDUE
    assert migrated.find("2025-02").status is ObligationStatus.OVERDUE
    assert migrated.find("2025-03").status is ObligationStatus.PENDING


def test_migration_is_idempotent(swept_schedule, schedule_repo):
    migrate_due_date_policy(repository=schedule_repo, policy="last_day", today=TODAY)
    version = schedule_repo.get_by_id(swept_schedule.id).version

    again = migrate_due_date_policy(repository=schedule_repo, policy="last_day", today=TODAY)

    assert again.updated_schedules == 0
    assert schedule_repo.get_by_id(swept_schedule.id).version == version


def test_backfill_stamps_only_legacy_schedules(schedule_factory, schedule_repo):
    legacy = schedule_factory()
    legacy.due_date_policy = None
    schedule_repo.save(legacy)
    current = schedule_factory()

    result = backfill_due_date_policy(repository=schedule_repo, policy="first_day")

    assert result.updated_schedules == 1
    assert schedule_repo.get_by_id(legacy.id).due_date_policy is DueDatePolicy.FIRST_DAY
    assert schedule_repo.get_by_id(current.id).version == 0


def test_change_due_date_policy_persists_publishes_and_migrates(
    swept_schedule, schedule_repo, settings_repo, admin
):
    feed = CallbackChangeFeed()
    events = []
    feed.subscribe(SETTINGS_TOPIC, events.append)

    result = change_due_date_policy(
        settings_repo=settings_repo,
        schedules=schedule_repo,
        policy="last_day",
        actor=admin,
        today=TODAY,
        feed=feed,
    )

    assert load_settings(settings_repo).due_date_policy is DueDatePolicy.LAST_DAY
    assert [event.key for event in events] == ["due_date_policy"]
    assert events[0].payload["value"] == "last_day"
    assert result.updated_schedules == 1


def test_change_due_date_policy_requires_admin(swept_schedule, schedule_repo, settings_repo, clerk):
    with pytest.raises(PolicyViolation):
        change_due_date_policy(
            settings_repo=settings_repo,
            schedules=schedule_repo,
            policy="last_day",
            actor=clerk,
            today=TODAY,
        )
    assert settings_repo.get("due_date_policy") is None
    assert schedule_repo.get_by_id(swept_schedule.id).due_date_policy is DueDatePolicy.FIRST_DAY


def test_unreadable_schedule_is_reported_not_fatal(schedule_factory, schedule_repo, corrupt_schedule):
    broken = schedule_factory()
    healthy = schedule_factory()
    corrupt_schedule(broken.id)

    preview = preview_policy_change(
        repository=schedule_repo, policy=DueDatePolicy.LAST_DAY, today=date(2025, 1, 10)
    )
    result = migrate_due_date_policy(
        repository=schedule_repo, policy=DueDatePolicy.LAST_DAY, today=date(2025, 1, 10)
    )

    assert preview.total_schedules == 2
    assert preview.schedules_to_update == 1
    assert preview.unreadable_schedules == [broken.id]
    assert result.updated_schedules == 1
    assert list(result.errors) == [broken.id]
    assert schedule_repo.get_by_id(healthy.id).due_date_policy is DueDatePolicy.LAST_DAY
