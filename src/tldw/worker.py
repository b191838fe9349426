"""Celery app for scheduled maintenance.

The worker consumes the ``maintenance`` queue and beat enqueues one
``maintenance.run_job`` per registered job, on that job's crontab.

    celery -A tldw.worker worker -Q maintenance
    celery -A tldw.worker beat
"""

from collections.abc import Iterable
from typing import Any

from celery import Celery
from celery.schedules import crontab
from celery.signals import task_postrun, task_prerun

from tldw.config import settings
from tldw.logging import bind_request_context, clear_request_context, setup_logging
from tldw.services.maintenance import DEFAULT_JOBS, MaintenanceJob

MAINTENANCE_QUEUE = "maintenance"

setup_logging()


def build_beat_schedule(jobs: Iterable[MaintenanceJob]) -> dict[str, dict[str, Any]]:
    """One beat entry per job, keyed ``maintenance-<job-name>``; times are UTC."""
    return {
        f"maintenance-{job.name.replace('_', '-')}": {
            "task": "maintenance.run_job",
            "schedule": crontab(**job.schedule.crontab_kwargs()),
            "args": (job.name,),
            "options": {"queue": MAINTENANCE_QUEUE},
        }
        for job in jobs
    }


celery_app = Celery(
    "tldw",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Jobs are idempotent, so a redelivered task is harmless
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=1800,
    task_soft_time_limit=1740,
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
    result_expires=7 * 86400,
    task_routes={"maintenance.*": {"queue": MAINTENANCE_QUEUE}},
    beat_schedule=build_beat_schedule(DEFAULT_JOBS),
)


@task_prerun.connect
def _bind_task_context(task_id: str | None = None, task: Any = None, **_: Any) -> None:
    bind_request_context(task_id, task=getattr(task, "name", None))


@task_postrun.connect
def _clear_task_context(**_: Any) -> None:
    clear_request_context()


celery_app.autodiscover_tasks(["tldw.jobs"])
