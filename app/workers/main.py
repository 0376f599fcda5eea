"""
Worker process: pulls jobs from the queue and runs them on a thread pool.

    pipeline-worker            (console script)
    python -m app.workers.main
"""
import logging
import signal

from prometheus_client import start_http_server

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import SessionLocal, init_db
from app.queue.factory import create_job_queue
from app.services.inference import InferenceAdapter
from app.services.webhooks.notifier import WebhookNotifier
from app.storage.factory import create_object_store
from app.workers.dispatcher import JobDispatcher
from app.workers.pool import WorkerPool

logger = logging.getLogger(__name__)


def build_dispatcher() -> JobDispatcher:
    object_store = create_object_store(settings)
    return JobDispatcher(
        SessionLocal,
        InferenceAdapter.from_settings(settings, object_store=object_store),
        object_store=object_store,
        notifier=WebhookNotifier(timeout=settings.webhook_timeout_seconds),
    )


def main() -> None:
    configure_logging()
    logger.info("Starting worker pool...")
    init_db()
    if settings.worker_metrics_port:
        start_http_server(settings.worker_metrics_port)

    queue = create_job_queue(settings)
    dispatcher = build_dispatcher()
    pool = WorkerPool(
        queue,
        dispatcher,
        concurrency=settings.worker_concurrency,
        dequeue_timeout=settings.worker_dequeue_timeout,
    )

    def _shutdown(signum, frame):
        logger.info("worker_shutdown_requested", extra={"count": int(signum)})
        pool.request_stop()

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    pool.start()
    try:
        pool.wait()
    finally:
        pool.stop(timeout=settings.inference_timeout_seconds)
        dispatcher.adapter.close()
        queue.close()


if __name__ == "__main__":
    main()
