"""
Job queue interface.

Delivery is at-least-once: a dequeued message is leased to one worker and
becomes visible again if it is not acknowledged within the visibility
timeout (worker crash). Consumers must tolerate seeing a job twice.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Delivery:
    """One leased message handed to a worker."""
    message_id: str
    job_id: str
    job_type: str
    payload: dict[str, Any]
    delivery_count: int = 1
    receipt: str = ""
    raw: str = field(default="", repr=False)

    @property
    def is_redelivery(self) -> bool:
        return self.delivery_count > 1


class JobQueue(ABC):
    @abstractmethod
    def enqueue(self, job_id: str, job_type: str, payload: dict[str, Any]) -> str:
        """Append a job descriptor. Returns the message id (the acknowledgement)."""
        raise NotImplementedError

    @abstractmethod
    def dequeue(self, timeout: float | None = None) -> Delivery | None:
        """Lease the next message, waiting up to `timeout` seconds. None when nothing arrived."""
        raise NotImplementedError

    @abstractmethod
    def ack(self, delivery: Delivery) -> bool:
        """Drop a leased message for good. False if the lease was lost (expired and re-leased)."""
        raise NotImplementedError

    @abstractmethod
    def size(self) -> int:
        """Messages waiting for a worker (not counting leased ones)."""
        raise NotImplementedError

    def close(self) -> None:
        pass
