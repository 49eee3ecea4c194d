"""Celery application configuration."""

import time

from celery import Celery
from celery.schedules import crontab
from celery.signals import task_failure, task_postrun, task_prerun, task_retry

from inboxsnap.config import get_settings
from inboxsnap.metrics import celery_task_duration_seconds, celery_task_total

settings = get_settings()

celery_app = Celery(
    "inboxsnap",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["inboxsnap.tasks.retention_tasks", "inboxsnap.tasks.snapshot_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_routes={
        "inboxsnap.tasks.snapshot_tasks.*": {"queue": "snapshots"},
        "inboxsnap.tasks.retention_tasks.*": {"queue": "default"},
    },
    beat_schedule={
        "sweep-expired-snapshots": {
            "task": "inboxsnap.tasks.retention_tasks.sweep_expired_snapshots",
            "schedule": settings.retention_sweep_minutes * 60.0,
        },
        "generate-scheduled-snapshots": {
            "task": "inboxsnap.tasks.snapshot_tasks.generate_scheduled_snapshots",
            "schedule": crontab(hour=settings.scheduled_snapshot_hour_utc, minute=0),
        },
    },
)

# task_id -> monotonic start time, filled by task_prerun
_task_start_times: dict[str, float] = {}


def _on_task_prerun(task_id=None, task=None, **kwargs):
    _task_start_times[task_id] = time.monotonic()


def _on_task_postrun(task_id=None, task=None, state=None, **kwargs):
    start = _task_start_times.pop(task_id, None)
    if start is not None:
        celery_task_duration_seconds.labels(task_name=task.name).observe(time.monotonic() - start)
    if state == "SUCCESS":
        celery_task_total.labels(task_name=task.name, status="success").inc()


def _on_task_failure(sender=None, task_id=None, **kwargs):
    celery_task_total.labels(task_name=sender.name, status="failure").inc()


def _on_task_retry(sender=None, **kwargs):
    celery_task_total.labels(task_name=sender.name, status="retry").inc()


def _setup_task_signals() -> None:
    task_prerun.connect(_on_task_prerun, weak=False)
    task_postrun.connect(_on_task_postrun, weak=False)
    task_failure.connect(_on_task_failure, weak=False)
    task_retry.connect(_on_task_retry, weak=False)


_setup_task_signals()
