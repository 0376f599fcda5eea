"""
Job intake: validate, record, enqueue.

The record is written before the message is queued, so a worker never sees
a job id without a record. If the enqueue fails the record is failed right
away rather than left QUEUED forever.
"""
import logging
from typing import Any

import httpx
from sqlalchemy.orm import Session

from app.core.errors import JobValidationError
from app.models.job import Job, JobType
from app.queue.base import JobQueue
from app.schemas.payloads import parse_payload
from app.services.jobs.service import JobService
from app.utils.metrics import jobs_created_total

logger = logging.getLogger(__name__)


def _check_webhook_url(webhook_url: str) -> None:
    try:
        url = httpx.URL(webhook_url)
    except httpx.InvalidURL as e:
        raise JobValidationError(f"webhook_url is not a valid URL: {e}") from None
    if url.scheme not in ("http", "https") or not url.host:
        raise JobValidationError("webhook_url must be an http(s) URL")


class IntakeService:
    def __init__(self, db: Session, queue: JobQueue) -> None:
        self.jobs = JobService(db)
        self.queue = queue

    def submit(
        self,
        job_type: str,
        payload: dict[str, Any] | None,
        business_id: str | None = None,
        customer_id: str | None = None,
        webhook_url: str | None = None,
    ) -> Job:
        try:
            member = JobType(job_type)
        except ValueError:
            raise JobValidationError(f"Unknown job type: {job_type}") from None
        parse_payload(member, payload)
        if webhook_url is not None:
            _check_webhook_url(webhook_url)

        payload = payload or {}
        job = self.jobs.create_job(
            member.value,
            payload,
            business_id=business_id,
            customer_id=customer_id,
            webhook_url=webhook_url,
        )
        try:
            self.queue.enqueue(job.job_id, member.value, payload)
        except Exception as e:
            logger.exception("job_enqueue_failed", extra={"job_id": job.job_id, "job_type": member.value})
            self.jobs.mark_failed(job.job_id, f"Enqueue failed: {type(e).__name__}")
            raise
        jobs_created_total.labels(job_type=member.value).inc()
        return job
