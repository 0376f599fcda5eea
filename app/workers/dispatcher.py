"""
Job dispatcher: runs one dequeued job through its handler.

For each delivery:
    1. skip (and only re-check the webhook) if the record is already terminal
    2. mark RUNNING
    3. resolve the handler from JOB_HANDLERS, validate the payload, run it
    4. normalize the output, mark COMPLETED; on any handler error mark FAILED
    5. send the webhook, at most once per job
Handler errors end in the job record, never in the worker.
"""
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.errors import InvalidTransitionError, JobNotFoundError, UnknownJobTypeError
from app.models.job import Job, JobState, JobType
from app.queue.base import Delivery
from app.schemas.payloads import parse_payload
from app.services.inference import InferenceAdapter
from app.services.jobs.service import JobService
from app.services.measurement import normalize
from app.services.measurement.service import MeasurementService
from app.services.webhooks.notifier import WebhookNotifier
from app.storage.base import ObjectStore
from app.utils.metrics import (
    active_jobs,
    job_duration_seconds,
    jobs_completed_total,
    jobs_failed_total,
    jobs_redelivered_total,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobHandler:
    run: Callable[[MeasurementService, Job, BaseModel], Any]
    normalize: Callable[[Any], Any]


JOB_HANDLERS: dict[JobType, JobHandler] = {
    JobType.RUN_PREDICTION: JobHandler(MeasurementService.run_predict, normalize.prediction_result),
    JobType.AUTO_MASK_PREDICT: JobHandler(MeasurementService.auto_mask_predict, normalize.auto_mask_result),
    JobType.VIDEO_PIPELINE: JobHandler(MeasurementService.video_pipeline, normalize.video_result),
    JobType.AVATAR: JobHandler(MeasurementService.generate_avatar, normalize.passthrough_result),
    JobType.GENERATE_OUTFIT: JobHandler(MeasurementService.generate_outfit, normalize.passthrough_result),
    JobType.EDIT_GARMENT: JobHandler(MeasurementService.edit_garment, normalize.passthrough_result),
}

_unhandled = set(JobType) - set(JOB_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No handler for job types: {sorted(t.value for t in _unhandled)}")


def resolve_handler(job_type: str) -> tuple[JobType, JobHandler]:
    try:
        member = JobType(job_type)
    except ValueError:
        raise UnknownJobTypeError(job_type) from None
    return member, JOB_HANDLERS[member]


class JobDispatcher:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        adapter: InferenceAdapter,
        object_store: ObjectStore | None = None,
        notifier: WebhookNotifier | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.adapter = adapter
        self.object_store = object_store
        self.notifier = notifier or WebhookNotifier()

    def process(self, delivery: Delivery) -> JobState:
        """
        Run one delivery to a terminal state and return it.
        Raises JobNotFoundError when the queue references a job with no record.
        """
        db = self.session_factory()
        try:
            jobs = JobService(db)
            job = jobs.get(delivery.job_id)
            if job is None:
                raise JobNotFoundError(delivery.job_id)

            state = JobState(job.state)
            if state.is_terminal:
                jobs_redelivered_total.labels(outcome="skipped_terminal").inc()
                logger.info("job_already_terminal", extra={"job_id": job.job_id, "state": state.value})
                self._notify(jobs, job)
                return state
            if state == JobState.RUNNING:
                jobs_redelivered_total.labels(outcome="resumed").inc()

            job = jobs.mark_running(job.job_id)
            logger.info(
                "job_started",
                extra={"job_id": job.job_id, "job_type": job.job_type, "attempt": job.attempts},
            )
            job = self._run(db, jobs, job)
            self._notify(jobs, job)
            return JobState(job.state)
        finally:
            db.close()

    def _run(self, db: Session, jobs: JobService, job: Job) -> Job:
        job_id, job_type = job.job_id, job.job_type
        start = time.time()
        active_jobs.inc()
        try:
            try:
                result = self._execute(db, job)
            except Exception as e:
                db.rollback()
                error = str(e) or type(e).__name__
                jobs_failed_total.labels(job_type=job_type, error_code=type(e).__name__).inc()
                logger.warning(
                    "job_failed",
                    extra={"job_id": job_id, "job_type": job_type, "error": error[:500]},
                    exc_info=not isinstance(e, UnknownJobTypeError),
                )
                return self._finish(jobs, job_id, JobState.FAILED, error=error)
            jobs_completed_total.labels(job_type=job_type).inc()
            logger.info("job_completed", extra={"job_id": job_id, "job_type": job_type})
            return self._finish(jobs, job_id, JobState.COMPLETED, result=result)
        finally:
            active_jobs.dec()
            job_duration_seconds.labels(job_type=job_type).observe(time.time() - start)

    def _execute(self, db: Session, job: Job) -> Any:
        job_type, handler = resolve_handler(job.job_type)
        payload = parse_payload(job_type, job.payload)
        service = MeasurementService(db, self.adapter, self.object_store)
        output = handler.run(service, job, payload)
        # Results are stored as JSON
        return json.loads(json.dumps(handler.normalize(output), default=str))

    def _finish(self, jobs: JobService, job_id: str, state: JobState, result: Any = None, error: str | None = None) -> Job:
        try:
            return jobs.update_status(job_id, state, result=result, error=error)
        except InvalidTransitionError as e:
            # Finished elsewhere meanwhile (stuck-job watchdog); that outcome stands
            logger.warning("job_finish_conflict", extra={"job_id": job_id, "state": e.current})
            job = jobs.get(job_id)
            if job is None:
                raise JobNotFoundError(job_id) from e
            return job

    def _notify(self, jobs: JobService, job: Job) -> None:
        if not job.webhook_url or not jobs.claim_webhook(job.job_id):
            return
        status_code = self.notifier.notify(
            job.webhook_url,
            job.job_id,
            job.state,
            result=job.result if job.state == JobState.COMPLETED.value else None,
            error=job.error if job.state == JobState.FAILED.value else None,
        )
        jobs.record_webhook_result(job.job_id, status_code)
