import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.errors import InvalidTransitionError, JobNotFoundError
from app.models.job import Job, JobState, TERMINAL_STATES

logger = logging.getLogger(__name__)

# Target state -> states it may be reached from. RUNNING -> RUNNING is a redelivery.
_ALLOWED_FROM: dict[JobState, tuple[JobState, ...]] = {
    JobState.RUNNING: (JobState.QUEUED, JobState.RUNNING),
    JobState.COMPLETED: (JobState.RUNNING,),
    JobState.FAILED: (JobState.QUEUED, JobState.RUNNING),
}


class JobService:
    """Job record store. Every state change is a conditional UPDATE keyed by job_id."""

    def __init__(self, db: Session):
        self.db = db

    def create_job(
        self,
        job_type: str,
        payload: dict[str, Any],
        business_id: str | None = None,
        customer_id: str | None = None,
        webhook_url: str | None = None,
        job_id: str | None = None,
    ) -> Job:
        job_kwargs: dict = {
            "job_type": job_type,
            "payload": payload,
            "state": JobState.QUEUED.value,
            "business_id": business_id,
            "customer_id": customer_id,
            "webhook_url": webhook_url,
        }
        if job_id is not None:
            job_kwargs["job_id"] = job_id
        job = Job(**job_kwargs)
        self.db.add(job)
        self.db.commit()
        self.db.refresh(job)
        logger.info("job_created", extra={"job_id": job.job_id, "job_type": job_type})
        return job

    def update_status(
        self,
        job_id: str,
        state: JobState,
        result: Any = None,
        error: str | None = None,
    ) -> Job:
        """
        Atomically move a job to `state`.
        Raises JobNotFoundError for an unknown id and InvalidTransitionError when the
        current state does not allow the move (terminal states never change).
        """
        state = JobState(state)
        allowed = _ALLOWED_FROM.get(state)
        if allowed is None:
            raise InvalidTransitionError(job_id, "?", state.value)

        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {"state": state.value, "updated_at": now}
        if state == JobState.RUNNING:
            values["started_at"] = now
            values["attempts"] = Job.attempts + 1
        elif state == JobState.COMPLETED:
            values.update(result=result, error=None, finished_at=now)
        else:
            values.update(result=None, error=error or "Job failed", finished_at=now)

        stmt = (
            update(Job)
            .where(Job.job_id == job_id, Job.state.in_([s.value for s in allowed]))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        res = self.db.execute(stmt)
        self.db.commit()

        if res.rowcount == 0:
            current = self.get(job_id)
            if current is None:
                raise JobNotFoundError(job_id)
            raise InvalidTransitionError(job_id, current.state, state.value)

        job = self.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def mark_running(self, job_id: str) -> Job:
        return self.update_status(job_id, JobState.RUNNING)

    def mark_completed(self, job_id: str, result: Any) -> Job:
        return self.update_status(job_id, JobState.COMPLETED, result=result)

    def mark_failed(self, job_id: str, error: str) -> Job:
        return self.update_status(job_id, JobState.FAILED, error=error)

    def claim_webhook(self, job_id: str) -> bool:
        """Reserve the single webhook attempt for a terminal job. False if already taken."""
        res = self.db.execute(
            update(Job)
            .where(
                Job.job_id == job_id,
                Job.webhook_url.is_not(None),
                Job.webhook_sent_at.is_(None),
                Job.state.in_([s.value for s in TERMINAL_STATES]),
            )
            .values(webhook_sent_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return res.rowcount > 0

    def record_webhook_result(self, job_id: str, status_code: int | None) -> None:
        self.db.execute(
            update(Job)
            .where(Job.job_id == job_id)
            .values(webhook_status_code=status_code)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

    def get(self, job_id: str) -> Job | None:
        return (
            self.db.query(Job)
            .filter(Job.job_id == job_id)
            .populate_existing()
            .one_or_none()
        )

    def list_stuck(self, started_before: datetime, limit: int = 100) -> list[Job]:
        """RUNNING jobs whose latest attempt started before the given time."""
        return (
            self.db.query(Job)
            .filter(Job.state == JobState.RUNNING.value, Job.started_at <= started_before)
            .order_by(Job.started_at)
            .limit(limit)
            .all()
        )
