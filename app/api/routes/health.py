from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.api.deps import get_job_queue
from app.db.session import get_db
from app.queue.base import JobQueue


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(
    response: Response,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
) -> dict:
    """Readiness probe - returns 503 if the database or the job queue is unavailable."""
    try:
        db.execute(text("SELECT 1"))
        queued = queue.size()
        return {"status": "ready", "queued": queued}
    except Exception as e:
        response.status_code = 503
        return {"status": "not_ready", "error": str(e)}
