"""Operator commands for the payment engine."""

from __future__ import annotations

import json
import time
from datetime import date
from typing import Optional

import click

from .config import BaseConfig
from .context import AppContext, create_app_context
from .domain.schedule import DueDatePolicy
from .domain.settings import SYSTEM_ACTOR
from .errors import LeaseKeeperError
from .logging_config import setup_logging
from .services.batching import BatchRunResult
from .services.overdue import run_overdue_sweep
from .services.penalties import run_penalty_accrual
from .services.policy_migration import backfill_due_date_policy, preview_policy_change
from .services.settings import change_due_date_policy


def _echo_result(result: BatchRunResult) -> None:
    click.echo(json.dumps(result.as_dict(), indent=2))
    if not result.succeeded:
        click.get_current_context().exit(1)


def _run_date(value: Optional[str]) -> date:
    if value is None:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise click.BadParameter(f"{value!r} is not a YYYY-MM-DD date", param_hint="--date") from exc


date_option = click.option(
    "--date", "run_date", default=None, help="Evaluate as of this date (YYYY-MM-DD, default today)"
)


@click.group()
@click.pass_context
def main(click_ctx: click.Context) -> None:
    """LeaseKeeper payment engine maintenance commands."""

    config = BaseConfig()
    setup_logging(config)
    click_ctx.obj = create_app_context(config)


@main.command("sweep")
@date_option
@click.pass_obj
def sweep(ctx: AppContext, run_date: Optional[str]) -> None:
    """Mark pending obligations past their grace period as overdue."""

    try:
        result = run_overdue_sweep(
            repository=ctx.schedule_repo,
            settings=ctx.organization_settings(),
            today=_run_date(run_date),
            directory=ctx.directory,
            batch_size=ctx.config.BATCH_SIZE,
            retries=ctx.config.STORE_RETRIES,
        )
    except LeaseKeeperError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_result(result)


@main.command("accrue")
@date_option
@click.pass_obj
def accrue(ctx: AppContext, run_date: Optional[str]) -> None:
    """Accrue late penalties on overdue obligations."""

    try:
        result = run_penalty_accrual(
            repository=ctx.schedule_repo,
            settings=ctx.organization_settings(),
            today=_run_date(run_date),
            directory=ctx.directory,
            batch_size=ctx.config.BATCH_SIZE,
            retries=ctx.config.STORE_RETRIES,
        )
    except LeaseKeeperError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_result(result)


@main.command("migrate-policy")
@click.option(
    "--policy",
    required=True,
    type=click.Choice([policy.value for policy in DueDatePolicy]),
    help="New organization-wide due date policy",
)
@click.option("--dry-run", is_flag=True, default=False, help="Report what would change without writing")
@date_option
@click.pass_obj
def migrate_policy(ctx: AppContext, policy: str, dry_run: bool, run_date: Optional[str]) -> None:
    """Switch the due date policy and migrate every schedule."""

    today = _run_date(run_date)
    try:
        if dry_run:
            preview = preview_policy_change(
                repository=ctx.schedule_repo, policy=policy, today=today
            )
            click.echo(
                json.dumps(
                    {
                        "policy": preview.policy.value,
                        "total_schedules": preview.total_schedules,
                        "schedules_to_update": preview.schedules_to_update,
                        "payments_to_update": preview.payments_to_update,
                        "status_changes": preview.status_changes,
                        "unreadable_schedules": preview.unreadable_schedules,
                    },
                    indent=2,
                )
            )
            return
        result = change_due_date_policy(
            settings_repo=ctx.settings_repo,
            schedules=ctx.schedule_repo,
            policy=policy,
            actor=SYSTEM_ACTOR,
            today=today,
            feed=ctx.change_feed,
            batch_size=ctx.config.BATCH_SIZE,
        )
    except LeaseKeeperError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_result(result)


@main.command("backfill-policy")
@click.pass_obj
def backfill_policy(ctx: AppContext) -> None:
    """Stamp the current organization policy onto schedules stored without one."""

    try:
        result = backfill_due_date_policy(
            repository=ctx.schedule_repo,
            policy=ctx.organization_settings().due_date_policy,
            batch_size=ctx.config.BATCH_SIZE,
            retries=ctx.config.STORE_RETRIES,
        )
    except LeaseKeeperError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_result(result)


@main.command("serve")
@click.pass_obj
def serve(ctx: AppContext) -> None:
    """Run the recurring sweep and accrual jobs until interrupted."""

    from .scheduler import create_scheduler

    scheduler = create_scheduler(ctx, auto_start=True)
    click.echo("Scheduler running. Press Ctrl+C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        click.echo("Stopping scheduler...")
    finally:
        scheduler.stop()


if __name__ == "__main__":  # pragma: no cover
    main()
