"""
Inference adapter: one uniform call for every remote model.

    adapter.predict(space, endpoint, {"front_image": FileBlob(...), "gender": "female"})

Sessions are created on first use per space and reused afterwards. Every
backend failure, including an open circuit, comes out as InferenceError.
"""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Iterator

import httpx
import pybreaker

from app.core.errors import InferenceError, ObjectStoreError
from app.services.circuit_breaker import get_circuit_breaker
from app.services.inference.base import FileBlob, RemoteFile
from app.services.inference.gradio import GradioSession
from app.storage.base import ObjectStore, StoredObject
from app.utils.metrics import inference_request_duration_seconds, inference_requests_total

logger = logging.getLogger(__name__)


class InferenceAdapter:
    def __init__(
        self,
        object_store: ObjectStore | None = None,
        hf_token: str | None = None,
        space_urls: dict[str, str] | None = None,
        timeout: float = 300.0,
        connect_timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.object_store = object_store
        self.hf_token = hf_token
        self.space_urls = space_urls or {}
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.client = httpx.Client(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            transport=transport,
            follow_redirects=True,
        )
        self._sessions: dict[str, GradioSession] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, object_store: ObjectStore | None = None) -> "InferenceAdapter":
        return cls(
            object_store=object_store,
            hf_token=settings.huggingface_api_key,
            space_urls=settings.space_url_overrides,
            timeout=settings.inference_timeout_seconds,
            connect_timeout=settings.inference_connect_timeout_seconds,
        )

    def session(self, space: str) -> GradioSession:
        with self._lock:
            session = self._sessions.get(space)
            if session is None:
                session = GradioSession(
                    space,
                    self.client,
                    hf_token=self.hf_token,
                    src=self.space_urls.get(space),
                    timeout=self.timeout,
                    connect_timeout=self.connect_timeout,
                )
                self._sessions[space] = session
            return session

    def predict(self, space: str, endpoint: str, named_inputs: dict[str, Any]) -> list[Any]:
        """Call `endpoint` on `space`; returns positional outputs."""
        breaker = get_circuit_breaker(f"inference:{space}")
        session = self.session(space)
        start = time.time()
        status = "error"
        try:
            outputs = breaker.call(session.call, endpoint, named_inputs)
            status = "success"
            return outputs
        except pybreaker.CircuitBreakerError as e:
            status = "circuit_open"
            raise InferenceError(
                f"Inference backend {space} is unavailable",
                detail={"space": space, "endpoint": endpoint},
            ) from e
        except InferenceError as e:
            logger.warning(
                "inference_call_failed",
                extra={"space": space, "endpoint": endpoint, "error": str(e)[:300]},
            )
            raise
        finally:
            elapsed = time.time() - start
            inference_requests_total.labels(space=space, endpoint=endpoint, status=status).inc()
            inference_request_duration_seconds.labels(space=space).observe(elapsed)
            logger.info(
                "inference_call",
                extra={
                    "space": space,
                    "endpoint": endpoint,
                    "state": status,
                    "latency_ms": int(elapsed * 1000),
                },
            )

    def download(self, space: str, remote: RemoteFile) -> bytes:
        return self.session(space).download(remote)

    @contextmanager
    def staged(self, blob: FileBlob, folder: str = "temp", resource_type: str = "auto") -> Iterator[StoredObject]:
        """Put `blob` in the object store for the duration of the block, then delete it."""
        if self.object_store is None:
            raise ObjectStoreError("No object store configured for staging inputs")
        stored = self.object_store.upload(blob.content, folder, resource_type=resource_type, filename=blob.filename)
        try:
            yield stored
        finally:
            self.discard(stored.file_public_id, stored.resource_type)

    def discard(self, public_id: str, resource_type: str = "image") -> None:
        """Delete a temporary object. A failed delete is logged, never raised."""
        if self.object_store is None or not public_id:
            return
        try:
            self.object_store.delete(public_id, resource_type)
        except ObjectStoreError as e:
            logger.warning("object_delete_failed", extra={"public_id": public_id, "error": str(e)[:300]})

    def close(self) -> None:
        self.client.close()
