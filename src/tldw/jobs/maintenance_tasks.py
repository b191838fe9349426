"""Celery tasks for scheduled maintenance.

Beat enqueues ``maintenance.run_job`` once per job on its own crontab (see
``tldw.worker``). ``maintenance.run_all`` runs a batch on demand. Failed jobs
are reported to the operator webhook; the tasks themselves never retry, since
every job picks up whatever is due on its next run.
"""

from typing import Any

from tldw.logging import get_logger
from tldw.services.maintenance import JobRunResult, MaintenanceScheduler
from tldw.services.notifications import get_notification_service
from tldw.utils import run_async
from tldw.worker import celery_app

logger = get_logger(__name__)


def _alert_failures(results: list[JobRunResult]) -> None:
    failed = [r for r in results if not r.success]
    if not failed:
        return

    notifier = get_notification_service()
    for result in failed:
        run_async(
            notifier.alert_ops(
                title=f"Maintenance job failed: {result.name}",
                message=result.error or "Unknown error",
                context={
                    "job": result.name,
                    "started_at": result.started_at.isoformat(),
                    "duration_ms": result.duration_ms,
                },
            )
        )


@celery_app.task(bind=True, name="maintenance.run_job", max_retries=0)
def run_maintenance_job_task(self: Any, job_name: str) -> dict[str, Any]:
    """Run one maintenance job.

    Args:
        job_name: Registered job name, e.g. ``reset_monthly_credits``.

    Returns:
        The job's ``JobRunResult`` as a dict.
    """
    logger.info("maintenance_task_started", task_id=self.request.id, job=job_name)

    scheduler = MaintenanceScheduler()
    try:
        result = scheduler.run(job_name)
    except ValueError as e:
        logger.error("maintenance_task_unknown_job", job=job_name)
        return {"name": job_name, "success": False, "error": str(e)}

    _alert_failures([result])
    return result.to_dict()


@celery_app.task(bind=True, name="maintenance.run_all", max_retries=0)
def run_all_maintenance_task(self: Any, job_names: list[str] | None = None) -> dict[str, Any]:
    """Run several maintenance jobs, all of them by default."""
    logger.info("maintenance_batch_task_started", task_id=self.request.id, jobs=job_names)

    scheduler = MaintenanceScheduler()
    try:
        results = scheduler.run_all(job_names)
    except ValueError as e:
        return {"success": False, "error": str(e), "results": []}

    _alert_failures(results)
    return {
        "success": all(r.success for r in results),
        "results": [r.to_dict() for r in results],
    }
