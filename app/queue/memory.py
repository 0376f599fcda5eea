"""In-process job queue for single-process deployments and tests."""
import json
import threading
import time
from collections import deque
from typing import Any, Callable
from uuid import uuid4

from app.queue.base import Delivery, JobQueue


class InMemoryJobQueue(JobQueue):
    """Thread-safe FIFO with visibility-timeout leases."""

    def __init__(self, visibility_timeout: float = 900.0, clock: Callable[[], float] = time.monotonic):
        self.visibility_timeout = visibility_timeout
        self._clock = clock
        self._cond = threading.Condition()
        self._pending: deque[dict[str, Any]] = deque()
        # message_id -> (lease deadline, receipt, message)
        self._leases: dict[str, tuple[float, str, dict[str, Any]]] = {}
        self._deliveries: dict[str, int] = {}

    def enqueue(self, job_id: str, job_type: str, payload: dict[str, Any]) -> str:
        message = {
            "id": uuid4().hex,
            "job_id": job_id,
            "job_type": job_type,
            # Snapshot: later mutation of the caller's dict must not leak in
            "payload": json.loads(json.dumps(payload)),
        }
        with self._cond:
            self._pending.append(message)
            self._cond.notify()
        return message["id"]

    def dequeue(self, timeout: float | None = None) -> Delivery | None:
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                self._requeue_expired()
                if self._pending:
                    return self._lease(self._pending.popleft())
                wait = self._next_wait(deadline)
                if wait is not None and wait <= 0:
                    return None
                self._cond.wait(wait)

    def ack(self, delivery: Delivery) -> bool:
        with self._cond:
            lease = self._leases.get(delivery.message_id)
            if lease is None or lease[1] != delivery.receipt:
                return False
            del self._leases[delivery.message_id]
            self._deliveries.pop(delivery.message_id, None)
            return True

    def size(self) -> int:
        with self._cond:
            self._requeue_expired()
            return len(self._pending)

    def in_flight(self) -> int:
        with self._cond:
            return len(self._leases)

    def _lease(self, message: dict[str, Any]) -> Delivery:
        receipt = uuid4().hex
        self._leases[message["id"]] = (self._clock() + self.visibility_timeout, receipt, message)
        count = self._deliveries.get(message["id"], 0) + 1
        self._deliveries[message["id"]] = count
        return Delivery(
            message_id=message["id"],
            job_id=message["job_id"],
            job_type=message["job_type"],
            payload=json.loads(json.dumps(message["payload"])),
            delivery_count=count,
            receipt=receipt,
        )

    def _requeue_expired(self) -> None:
        now = self._clock()
        expired = [mid for mid, (deadline, _, _) in self._leases.items() if deadline <= now]
        for mid in expired:
            _, _, message = self._leases.pop(mid)
            self._pending.appendleft(message)

    def _next_wait(self, deadline: float | None) -> float | None:
        now = self._clock()
        candidates = []
        if deadline is not None:
            candidates.append(deadline - now)
        if self._leases:
            candidates.append(min(d for d, _, _ in self._leases.values()) - now)
        return min(candidates) if candidates else None
