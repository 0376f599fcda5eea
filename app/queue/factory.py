"""Builds the configured job queue backend."""
import logging

from app.queue.base import JobQueue
from app.queue.memory import InMemoryJobQueue
from app.queue.redis_queue import RedisJobQueue

logger = logging.getLogger(__name__)


def create_job_queue(settings) -> JobQueue:
    backend = settings.job_queue_backend
    if backend == "redis":
        queue: JobQueue = RedisJobQueue.from_url(
            settings.redis_url,
            settings.job_queue_name,
            visibility_timeout=settings.job_visibility_timeout_seconds,
            poll_interval=settings.job_queue_poll_interval,
        )
    elif backend == "memory":
        queue = InMemoryJobQueue(visibility_timeout=settings.job_visibility_timeout_seconds)
    else:
        raise ValueError(f"Unknown job queue backend: {backend}. Available backends: redis, memory")
    logger.info(f"Job queue backend: {backend}")
    return queue
