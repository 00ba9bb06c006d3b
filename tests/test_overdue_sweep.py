from __future__ import annotations

from datetime import date
from decimal import Decimal

from leasekeeper.domain.schedule import ObligationStatus
from leasekeeper.domain.settings import BusinessRules
from leasekeeper.services.overdue import run_overdue_sweep


class _Directory:
    def __init__(self, rules):
        self._rules = rules

    def business_rules_for(self, facility_id):
        return self._rules

    def display_name(self, lease_id):
        return lease_id


def _statuses(schedule_repo, schedule_id):
    schedule = schedule_repo.get_by_id(schedule_id)
    return {o.month_key: o.status for o in schedule.obligations}


def test_sweep_flips_february_after_grace(schedule_factory, schedule_repo, org_settings):
    schedule = schedule_factory()

    result = run_overdue_sweep(
        repository=schedule_repo, settings=org_settings, today=date(2025, 2, 5)
    )

    statuses = _statuses(schedule_repo, schedule.id)
    assert statuses["2025-01"] is ObligationStatus.OVERDUE
    assert statuses["2025-02"] is ObligationStatus.OVERDUE
    assert statuses["2025-03"] is ObligationStatus.PENDING
    assert statuses["2025-01-deposit"] is ObligationStatus.PAID
    assert result.total_schedules == 1
    assert result.updated_schedules == 1
    assert result.updated_obligations == 2
    assert result.succeeded


def test_sweep_respects_grace_period_boundary(schedule_factory, schedule_repo, org_settings):
    schedule = schedule_factory(start_date=date(2025, 2, 1), end_date=date(2025, 3, 31))

    # Due 2025-02-01 with 3 grace days: still pending on the 4th.
    run_overdue_sweep(repository=schedule_repo, settings=org_settings, today=date(2025, 2, 4))
    assert _statuses(schedule_repo, schedule.id)["2025-02"] is ObligationStatus.PENDING

    run_overdue_sweep(repository=schedule_repo, settings=org_settings, today=date(2025, 2, 5))
    assert _statuses(schedule_repo, schedule.id)["2025-02"] is ObligationStatus.OVERDUE


def test_sweep_is_idempotent(schedule_factory, schedule_repo, org_settings):
    schedule = schedule_factory()
    today = date(2025, 2, 5)

    run_overdue_sweep(repository=schedule_repo, settings=org_settings, today=today)
    after_first = schedule_repo.get_by_id(schedule.id)
    second = run_overdue_sweep(repository=schedule_repo, settings=org_settings, today=today)
    after_second = schedule_repo.get_by_id(schedule.id)

    assert second.updated_schedules == 0
    assert second.updated_obligations == 0
    assert after_second.version == after_first.version
    assert after_second.obligations == after_first.obligations


def test_sweep_skips_paid_and_synthetic_obligations(schedule_factory, schedule_repo, org_settings):
    schedule = schedule_factory(deposit_paid=False)
    schedule.find("2025-01").status = ObligationStatus.PAID
    schedule.find("2025-01").paid_amount = Decimal("1000.00")
    schedule.recompute_totals()
    schedule_repo.save(schedule)

    run_overdue_sweep(repository=schedule_repo, settings=org_settings, today=date(2025, 2, 5))

    statuses = _statuses(schedule_repo, schedule.id)
    assert statuses["2025-01"] is ObligationStatus.PAID
    assert statuses["2025-01-deposit"] is ObligationStatus.PENDING
    assert statuses["2025-02"] is ObligationStatus.OVERDUE


def test_sweep_uses_directory_rules(schedule_factory, schedule_repo, org_settings):
    schedule = schedule_factory(start_date=date(2025, 2, 1), end_date=date(2025, 2, 28))
    directory = _Directory(BusinessRules(grace_period_days=10))

    run_overdue_sweep(
        repository=schedule_repo,
        settings=org_settings,
        today=date(2025, 2, 5),
        directory=directory,
    )

    assert _statuses(schedule_repo, schedule.id)["2025-02"] is ObligationStatus.PENDING


def test_sweep_keeps_totals_consistent(schedule_factory, schedule_repo, org_settings):
    schedule = schedule_factory()
    run_overdue_sweep(repository=schedule_repo, settings=org_settings, today=date(2025, 6, 30))

    reloaded = schedule_repo.get_by_id(schedule.id)
    assert reloaded.total_amount == Decimal("13000.00")
    assert reloaded.total_paid == Decimal("1000.00")
    assert reloaded.outstanding_amount == Decimal("12000.00")


def test_unreadable_schedule_does_not_stop_the_sweep(
    schedule_factory, schedule_repo, org_settings, corrupt_schedule
):
    broken = schedule_factory()
    healthy = schedule_factory()
    corrupt_schedule(broken.id)

    result = run_overdue_sweep(
        repository=schedule_repo, settings=org_settings, today=date(2025, 2, 5)
    )

    assert result.total_schedules == 2
    assert result.updated_schedules == 1
    assert list(result.errors) == [broken.id]
    assert "cancelled" in result.errors[broken.id]
    assert not result.succeeded
    assert _statuses(schedule_repo, healthy.id)["2025-01"] is ObligationStatus.OVERDUE
