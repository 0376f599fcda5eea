import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.deps import get_job_queue
from app.core.errors import JobValidationError
from app.db.session import get_db
from app.queue.base import JobQueue
from app.schemas.jobs import JobStatusOut, JobSubmitIn, JobSubmitOut
from app.services.intake.service import IntakeService
from app.services.jobs.service import JobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("", response_model=JobSubmitOut, status_code=status.HTTP_202_ACCEPTED)
def submit_job(
    body: JobSubmitIn,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
) -> JobSubmitOut:
    try:
        job = IntakeService(db, queue).submit(
            body.job_type,
            body.payload,
            business_id=body.business_id,
            customer_id=body.customer_id,
            webhook_url=body.webhook_url,
        )
    except JobValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except Exception:
        # Record already failed by intake; the queue is unreachable
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Job queue unavailable")
    return JobSubmitOut(job_id=job.job_id, status=job.state)


@router.get("/{job_id}", response_model=JobStatusOut)
def get_job(job_id: str, db: Session = Depends(get_db)) -> JobStatusOut:
    job = JobService(db).get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatusOut(
        job_id=job.job_id,
        job_type=job.job_type,
        status=job.state,
        result=job.result,
        error=job.error,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )
