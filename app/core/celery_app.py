"""
Celery application for periodic maintenance only.
Jobs themselves go through app.queue; beat runs the stuck-job watchdog.
"""
from celery import Celery
from celery.schedules import crontab

from app.core.config import settings

celery_app = Celery(
    "app",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "app.workers.tasks.watchdog_jobs",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=600,
    result_expires=86400,
    beat_schedule={
        "fail-stuck-jobs": {
            "task": "app.workers.tasks.watchdog_jobs.fail_stuck_jobs",
            "schedule": crontab(minute="*/5"),
        },
    },
)
