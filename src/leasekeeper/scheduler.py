"""Background scheduler for the nightly sweep and daily penalty accrual."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.cron import CronTrigger

from .logging_config import get_logger
from .services.batching import BatchRunResult, CancellationToken
from .services.overdue import run_overdue_sweep
from .services.penalties import run_penalty_accrual

if TYPE_CHECKING:
    from .context import AppContext

logger = get_logger("leasekeeper.scheduler")

SWEEP_JOB_ID = "nightly_overdue_sweep"
ACCRUAL_JOB_ID = "daily_penalty_accrual"


class PaymentJobScheduler:
    """Runs the recurring payment jobs on an APScheduler background thread."""

    def __init__(self, ctx: AppContext, *, today: Callable[[], date] = date.today):
        """Initialize the scheduler with app context.

        Args:
            ctx: Application context with repositories and config
            today: Clock used to date each run
        """
        self.ctx = ctx
        self.today = today
        self.scheduler: Optional[APScheduler] = None
        self.cancel_token = CancellationToken()

    def start(self) -> None:
        """Start the background scheduler."""
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        config = self.ctx.config
        self.cancel_token = CancellationToken()
        self.scheduler = APScheduler()

        self.scheduler.add_job(
            func=self.run_sweep,
            trigger=CronTrigger(hour=config.SWEEP_HOUR, minute=0),
            id=SWEEP_JOB_ID,
            name="Nightly Overdue Sweep",
            replace_existing=True,
            max_instances=1,
        )
        logger.info(f"Scheduled overdue sweep at {config.SWEEP_HOUR:02d}:00")

        self.scheduler.add_job(
            func=self.run_accrual,
            trigger=CronTrigger(hour=config.ACCRUAL_HOUR, minute=0),
            id=ACCRUAL_JOB_ID,
            name="Daily Penalty Accrual",
            replace_existing=True,
            max_instances=1,
        )
        logger.info(f"Scheduled penalty accrual at {config.ACCRUAL_HOUR:02d}:00")

        self.scheduler.start()
        logger.info("Background scheduler started")

    def stop(self) -> None:
        """Stop the scheduler; running jobs finish their current batch."""
        self.cancel_token.cancel()
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Background scheduler stopped")

    def run_sweep(self) -> Optional[BatchRunResult]:
        """Execute the overdue sweep."""
        try:
            logger.info("Starting scheduled overdue sweep")
            result = run_overdue_sweep(
                repository=self.ctx.schedule_repo,
                settings=self.ctx.organization_settings(),
                today=self.today(),
                directory=self.ctx.directory,
                batch_size=self.ctx.config.BATCH_SIZE,
                cancel_token=self.cancel_token,
                retries=self.ctx.config.STORE_RETRIES,
            )
            logger.info(
                f"Scheduled overdue sweep completed: {result.updated_obligations} obligations overdue"
            )
            return result
        except Exception as exc:
            logger.error(f"Scheduled overdue sweep failed: {exc}", exc_info=True)
            return None

    def run_accrual(self) -> Optional[BatchRunResult]:
        """Execute the daily penalty accrual."""
        try:
            logger.info("Starting scheduled penalty accrual")
            result = run_penalty_accrual(
                repository=self.ctx.schedule_repo,
                settings=self.ctx.organization_settings(),
                today=self.today(),
                directory=self.ctx.directory,
                batch_size=self.ctx.config.BATCH_SIZE,
                cancel_token=self.cancel_token,
                retries=self.ctx.config.STORE_RETRIES,
            )
            logger.info(
                f"Scheduled penalty accrual completed: {result.updated_schedules} schedules charged"
            )
            return result
        except Exception as exc:
            logger.error(f"Scheduled penalty accrual failed: {exc}", exc_info=True)
            return None


def create_scheduler(ctx: AppContext, *, auto_start: bool = False) -> PaymentJobScheduler:
    """Create and optionally start the payment job scheduler.

    Args:
        ctx: Application context
        auto_start: Whether to start the scheduler immediately

    Returns:
        PaymentJobScheduler instance
    """
    scheduler = PaymentJobScheduler(ctx)
    if auto_start:
        scheduler.start()
    return scheduler
