from functools import lru_cache

from app.core.config import settings
from app.queue.base import JobQueue
from app.queue.factory import create_job_queue


@lru_cache(maxsize=1)
def get_job_queue() -> JobQueue:
    return create_job_queue(settings)
