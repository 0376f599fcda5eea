"""
Fixed-size worker pool: N threads, each pulling one job at a time from the queue.

A delivery is acknowledged once the dispatcher has driven the job to a
terminal state, or when the failure is a non-retryable pipeline error
(e.g. the job record is missing). Any other crash leaves the message
leased so the queue redelivers it after the visibility timeout.
"""
import logging
import threading

from app.core.errors import PipelineError
from app.queue.base import Delivery, JobQueue
from app.utils.metrics import queue_length
from app.workers.dispatcher import JobDispatcher

logger = logging.getLogger(__name__)


class WorkerPool:
    def __init__(
        self,
        queue: JobQueue,
        dispatcher: JobDispatcher,
        concurrency: int = 4,
        dequeue_timeout: float = 1.0,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.queue = queue
        self.dispatcher = dispatcher
        self.concurrency = concurrency
        self.dequeue_timeout = dequeue_timeout
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("Worker pool already started")
        self._stop.clear()
        for i in range(self.concurrency):
            name = f"worker-{i}"
            thread = threading.Thread(target=self._worker_loop, args=(name,), name=name, daemon=True)
            thread.start()
            self._threads.append(thread)
        logger.info("worker_pool_started", extra={"count": self.concurrency})

    def request_stop(self) -> None:
        """Signal-safe: ask the workers to finish; stop() does the joining."""
        self._stop.set()

    def stop(self, timeout: float | None = None) -> None:
        """Stop taking new jobs and wait for in-flight ones to finish."""
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info("worker_pool_stopped")

    def wait(self) -> None:
        """Block until stop() is called from another thread or a signal handler."""
        while not self._stop.wait(1.0):
            pass

    def _worker_loop(self, name: str) -> None:
        while not self._stop.is_set():
            try:
                delivery = self.queue.dequeue(timeout=self.dequeue_timeout)
            except Exception:
                logger.exception("queue_dequeue_failed", extra={"worker": name})
                self._stop.wait(self.dequeue_timeout)
                continue
            if delivery is None:
                continue
            self.handle(delivery, name)

    def handle(self, delivery: Delivery, worker: str = "worker") -> None:
        try:
            self.dispatcher.process(delivery)
        except PipelineError as e:
            logger.error(
                "job_dropped",
                extra={"job_id": delivery.job_id, "worker": worker, "error": str(e)[:500]},
            )
        except Exception:
            logger.exception("job_processing_crashed", extra={"job_id": delivery.job_id, "worker": worker})
            return
        if not self.queue.ack(delivery):
            logger.warning("queue_ack_lost", extra={"job_id": delivery.job_id, "worker": worker})
        try:
            queue_length.set(self.queue.size())
        except Exception:
            logger.debug("queue_size_unavailable", exc_info=True)
