"""
Celery beat task: fail jobs stuck in RUNNING longer than the threshold.
A worker that died mid-job leaves its record RUNNING; the queue redelivers
the message, but if that never happens the job would stay open forever.
Each stuck job is failed, its credit hold released and its webhook sent.
"""
import logging
from datetime import datetime, timedelta, timezone

from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.errors import InvalidTransitionError
from app.db.session import SessionLocal
from app.services.billing.guard import BillingGuard
from app.services.jobs.service import JobService
from app.services.webhooks.notifier import WebhookNotifier
from app.utils.metrics import jobs_failed_total

logger = logging.getLogger(__name__)

STUCK_JOB_ERROR = "Job timed out"


def fail_stuck(db, notifier: WebhookNotifier, threshold_minutes: int, limit: int = 100) -> int:
    jobs = JobService(db)
    billing = BillingGuard(db)
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=threshold_minutes)
    failed = 0
    for stuck in jobs.list_stuck(cutoff, limit=limit):
        job_id = stuck.job_id
        try:
            job = jobs.mark_failed(job_id, STUCK_JOB_ERROR)
        except InvalidTransitionError:
            # Finished between the query and the update
            continue
        failed += 1
        jobs_failed_total.labels(job_type=job.job_type, error_code="Timeout").inc()
        billing.release(job.business_id, job.customer_id, job_id)
        logger.warning("job_timed_out", extra={"job_id": job_id, "job_type": job.job_type})
        if job.webhook_url and jobs.claim_webhook(job_id):
            status_code = notifier.notify(job.webhook_url, job_id, job.state, error=job.error)
            jobs.record_webhook_result(job_id, status_code)
    return failed


@celery_app.task(
    name="app.workers.tasks.watchdog_jobs.fail_stuck_jobs",
    time_limit=300,
    soft_time_limit=280,
)
def fail_stuck_jobs() -> dict:
    db = SessionLocal()
    try:
        failed = fail_stuck(
            db,
            WebhookNotifier(timeout=settings.webhook_timeout_seconds),
            settings.stuck_job_threshold_minutes,
        )
        if failed:
            logger.info("stuck_jobs_failed", extra={"count": failed})
        return {"ok": True, "failed_count": failed}
    finally:
        db.close()
