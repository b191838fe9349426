"""Scheduled maintenance jobs.

Each job is a plain function of a ``JobContext`` that returns a small dict of
counts. ``MaintenanceScheduler`` owns the named jobs, runs each one in its own
database transaction, and reports failures per job instead of raising, so a
batch run always gets through every job. Celery beat drives the schedule in
production; the CLI and admin API trigger jobs by hand.
"""

from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tldw.config import settings
from tldw.db.models import CreditTransactionModel, UsageLogModel, UserModel, VideoModel
from tldw.db.session import get_session_context
from tldw.domain.enums import JobFrequency, Plan
from tldw.logging import get_logger
from tldw.services.ledger import CreditLedger
from tldw.services.notifications import (
    NotificationService,
    get_notification_service,
    low_credit_notification,
    subscription_expired_notification,
)
from tldw.services.subscriptions import SubscriptionService
from tldw.services.video_cache import VideoCache
from tldw.utils.time import ensure_utc, months_ago, next_midnight, utcnow

logger = get_logger(__name__)


@dataclass
class JobContext:
    """What a job gets to work with."""

    session: Session
    now: datetime
    notifier: NotificationService


JobFunc = Callable[[JobContext], dict[str, Any]]


@dataclass(frozen=True)
class JobSchedule:
    """UTC wall-clock schedule, in crontab terms."""

    frequency: JobFrequency
    hour: int
    minute: int = 0
    day_of_week: int | None = None  # 0 = Monday
    day_of_month: int | None = None

    def matches(self, at: datetime) -> bool:
        """Whether ``at`` falls in the scheduled minute."""
        at = ensure_utc(at)
        if (at.hour, at.minute) != (self.hour, self.minute):
            return False
        if self.day_of_week is not None and at.weekday() != self.day_of_week:
            return False
        if self.day_of_month is not None and at.day != self.day_of_month:
            return False
        return True

    def crontab_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"minute": self.minute, "hour": self.hour}
        if self.day_of_week is not None:
            # crontab counts from Sunday = 0
            kwargs["day_of_week"] = (self.day_of_week + 1) % 7
        if self.day_of_month is not None:
            kwargs["day_of_month"] = self.day_of_month
        return kwargs


@dataclass(frozen=True)
class MaintenanceJob:
    """A named maintenance job and when it runs."""

    name: str
    func: JobFunc
    schedule: JobSchedule
    description: str = ""


@dataclass
class JobRunResult:
    """Outcome of one job run."""

    name: str
    success: bool
    started_at: datetime
    finished_at: datetime
    stats: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_ms": self.duration_ms,
            "stats": self.stats,
            "error": self.error,
        }


# =============================================================================
# Jobs
# =============================================================================


def reset_daily_usage(ctx: JobContext) -> dict[str, Any]:
    """Zero today's summary counter for users past their daily boundary."""
    result = ctx.session.execute(
        update(UserModel)
        .where(UserModel.is_active.is_(True), UserModel.daily_reset_at <= ctx.now)
        .values(summaries_today=0, daily_reset_at=next_midnight(ctx.now))
    )
    return {"users_reset": result.rowcount or 0}


def reset_monthly_credits(ctx: JobContext) -> dict[str, Any]:
    """Apply the monthly credit reset to every due free user."""
    users = list(
        ctx.session.execute(
            select(UserModel).where(
                UserModel.plan == Plan.FREE.value,
                UserModel.is_active.is_(True),
                UserModel.next_credit_reset_at <= ctx.now,
            )
        ).scalars()
    )

    ledger = CreditLedger(ctx.session)
    reset = errors = 0
    for user in users:
        try:
            with ctx.session.begin_nested():
                if ledger.reset_monthly(user, ctx.now):
                    reset += 1
        except SQLAlchemyError as e:
            errors += 1
            logger.error("monthly_reset_user_failed", user_id=str(user.id), error=str(e))
    return {"users_reset": reset, "errors": errors}


def check_expired_subscriptions(ctx: JobContext) -> dict[str, Any]:
    """Downgrade cancelled pro users whose paid period is over."""
    users = list(
        ctx.session.execute(
            select(UserModel).where(
                UserModel.plan == Plan.PRO.value,
                UserModel.cancel_at_period_end.is_(True),
                UserModel.current_period_end <= ctx.now,
            )
        ).scalars()
    )

    subscriptions = SubscriptionService(ctx.session)
    downgraded = errors = 0
    for user in users:
        try:
            with ctx.session.begin_nested():
                subscriptions.downgrade_expired(user, ctx.now)
        except SQLAlchemyError as e:
            errors += 1
            logger.error("downgrade_user_failed", user_id=str(user.id), error=str(e))
            continue
        downgraded += 1
        ctx.notifier.notify(subscription_expired_notification(user.email, user.name))
    return {"users_downgraded": downgraded, "errors": errors}


def notify_low_credit_users(ctx: JobContext) -> dict[str, Any]:
    """Remind opted-in free users whose balance is nearly spent."""
    users = ctx.session.execute(
        select(UserModel).where(
            UserModel.plan == Plan.FREE.value,
            UserModel.is_active.is_(True),
            UserModel.notify_credit_low.is_(True),
            UserModel.credit_balance > 0,
            UserModel.credit_balance <= settings.low_credit_threshold,
        )
    ).scalars()

    notified = emailed = 0
    for user in users:
        notified += 1
        if ctx.notifier.notify(low_credit_notification(user.email, user.name, user.credit_balance)):
            emailed += 1
    return {"users_notified": notified, "emails_sent": emailed}


def cleanup_expired_cache(ctx: JobContext) -> dict[str, Any]:
    return {"videos_deleted": VideoCache(ctx.session).purge_expired(ctx.now)}


def generate_analytics(ctx: JobContext) -> dict[str, Any]:
    """Weekly read-only usage report."""
    session = ctx.session
    week_ago = ctx.now - timedelta(days=7)

    def count(*criteria: Any) -> int:
        return session.execute(select(func.count(UserModel.id)).where(*criteria)).scalar_one()

    active = UserModel.is_active.is_(True)
    total_summaries = session.execute(
        select(func.coalesce(func.sum(UserModel.total_summaries), 0)).where(active)
    ).scalar_one()
    summaries_this_week = session.execute(
        select(func.count(UsageLogModel.id)).where(
            UsageLogModel.success.is_(True), UsageLogModel.created_at >= week_ago
        )
    ).scalar_one()
    views, hits = session.execute(
        select(
            func.coalesce(func.sum(VideoModel.total_views), 0),
            func.coalesce(func.sum(VideoModel.cache_hits), 0),
        )
    ).one()

    analytics = {
        "week_ending": ctx.now.isoformat(),
        "total_users": count(active),
        "new_users": count(UserModel.created_at >= week_ago),
        "free_users": count(active, UserModel.plan == Plan.FREE.value),
        "pro_users": count(active, UserModel.plan == Plan.PRO.value),
        "total_summaries": int(total_summaries),
        "summaries_this_week": int(summaries_this_week),
        "cache_hit_rate": round(hits / views * 100, 2) if views else 0.0,
    }
    logger.info("weekly_analytics", **analytics)
    return analytics


def cleanup_old_logs(ctx: JobContext) -> dict[str, Any]:
    """Drop usage logs and ledger entries past the retention window."""
    cutoff = months_ago(ctx.now, settings.log_retention_months)
    usage = ctx.session.execute(delete(UsageLogModel).where(UsageLogModel.created_at < cutoff))
    transactions = ctx.session.execute(
        delete(CreditTransactionModel).where(CreditTransactionModel.created_at < cutoff)
    )
    return {
        "usage_logs_deleted": usage.rowcount or 0,
        "transactions_deleted": transactions.rowcount or 0,
    }


DEFAULT_JOBS: tuple[MaintenanceJob, ...] = (
    MaintenanceJob(
        "reset_daily_usage",
        reset_daily_usage,
        JobSchedule(JobFrequency.DAILY, hour=0),
        "Reset daily summary counters",
    ),
    MaintenanceJob(
        "reset_monthly_credits",
        reset_monthly_credits,
        JobSchedule(JobFrequency.DAILY, hour=1),
        "Refill free-plan credits at the monthly boundary",
    ),
    MaintenanceJob(
        "check_expired_subscriptions",
        check_expired_subscriptions,
        JobSchedule(JobFrequency.DAILY, hour=2),
        "Downgrade cancelled subscriptions after their period ends",
    ),
    MaintenanceJob(
        "notify_low_credit_users",
        notify_low_credit_users,
        JobSchedule(JobFrequency.DAILY, hour=3),
        "Notify free users who are low on credits",
    ),
    MaintenanceJob(
        "cleanup_expired_cache",
        cleanup_expired_cache,
        JobSchedule(JobFrequency.WEEKLY, hour=4, day_of_week=6),
        "Delete expired videos from the cache",
    ),
    MaintenanceJob(
        "generate_analytics",
        generate_analytics,
        JobSchedule(JobFrequency.WEEKLY, hour=5, day_of_week=0),
        "Log the weekly usage report",
    ),
    MaintenanceJob(
        "cleanup_old_logs",
        cleanup_old_logs,
        JobSchedule(JobFrequency.MONTHLY, hour=6, day_of_month=1),
        "Delete old usage logs and credit transactions",
    ),
)


# =============================================================================
# Scheduler
# =============================================================================


class MaintenanceScheduler:
    """Owns the maintenance jobs and runs them with failure isolation.

    Args:
        jobs: Jobs to register; defaults to ``DEFAULT_JOBS``.
        session_factory: Context manager factory yielding a session that
            commits on success and rolls back on error.
        clock: Source of the current time.
        notifier: Notification service handed to jobs.
    """

    def __init__(
        self,
        jobs: Iterable[MaintenanceJob] | None = None,
        session_factory: Callable[[], AbstractContextManager[Session]] = get_session_context,
        clock: Callable[[], datetime] = utcnow,
        notifier: NotificationService | None = None,
    ) -> None:
        self._jobs: dict[str, MaintenanceJob] = {}
        self.session_factory = session_factory
        self.clock = clock
        self.notifier = get_notification_service() if notifier is None else notifier
        for job in DEFAULT_JOBS if jobs is None else jobs:
            self.register(job)

    def register(self, job: MaintenanceJob) -> None:
        if job.name in self._jobs:
            raise ValueError(f"Maintenance job already registered: {job.name}")
        self._jobs[job.name] = job

    @property
    def jobs(self) -> list[MaintenanceJob]:
        return list(self._jobs.values())

    @property
    def job_names(self) -> list[str]:
        return list(self._jobs)

    def get(self, name: str) -> MaintenanceJob:
        try:
            return self._jobs[name]
        except KeyError:
            raise ValueError(f"Unknown maintenance job: {name}") from None

    def run(self, name: str) -> JobRunResult:
        """Run one job in its own transaction; failures are reported, not raised."""
        job = self.get(name)
        started = ensure_utc(self.clock())
        logger.info("maintenance_job_started", job=name)

        try:
            with self.session_factory() as session:
                stats = job.func(JobContext(session=session, now=started, notifier=self.notifier))
        except Exception as e:
            finished = ensure_utc(self.clock())
            logger.exception("maintenance_job_failed", job=name, error=str(e))
            return JobRunResult(
                name=name,
                success=False,
                started_at=started,
                finished_at=finished,
                error=str(e) or type(e).__name__,
            )

        finished = ensure_utc(self.clock())
        logger.info("maintenance_job_completed", job=name, **stats)
        return JobRunResult(
            name=name,
            success=True,
            started_at=started,
            finished_at=finished,
            stats=stats,
        )

    def run_all(self, names: Iterable[str] | None = None) -> list[JobRunResult]:
        """Run several jobs (all by default); one failing job does not stop the rest."""
        selected = list(names) if names is not None else self.job_names
        for name in selected:
            self.get(name)
        results = [self.run(name) for name in selected]

        failed = [r.name for r in results if not r.success]
        logger.info(
            "maintenance_batch_completed",
            jobs=len(results),
            failed=len(failed),
            failed_jobs=failed,
        )
        return results

    def due(self, at: datetime | None = None) -> list[MaintenanceJob]:
        """Jobs whose scheduled minute is ``at``."""
        at = ensure_utc(at or self.clock())
        return [job for job in self._jobs.values() if job.schedule.matches(at)]

    def run_due(self, at: datetime | None = None) -> list[JobRunResult]:
        return self.run_all(job.name for job in self.due(at))
