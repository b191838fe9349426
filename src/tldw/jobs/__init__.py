"""Celery job definitions."""

from tldw.jobs.maintenance_tasks import run_all_maintenance_task, run_maintenance_job_task

__all__ = [
    "run_all_maintenance_task",
    "run_maintenance_job_task",
]
