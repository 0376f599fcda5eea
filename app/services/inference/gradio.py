"""
Session for one Gradio app (Hugging Face Space) on top of gradio_client.

gradio_client resolves the Space, reads its API schema and runs calls through
the Gradio queue. File inputs are written to temporary files and sent with
`handle_file`; file outputs are not downloaded by the client
(download_files=False) and come back as FileData dicts to fetch on demand.
"""
import logging
import os
import tempfile
import threading
from contextlib import ExitStack
from typing import Any

import httpx
from gradio_client import Client, handle_file
from gradio_client.exceptions import AppError

from app.core.errors import InferenceError
from app.services.inference.base import FileBlob, RemoteFile, extension_for

logger = logging.getLogger(__name__)


class GradioSession:
    """
    Lazily started, reusable connection to one Space.
    Start-up (client and schema) runs once; later calls reuse it.
    """

    def __init__(
        self,
        space: str,
        http_client: httpx.Client,
        hf_token: str | None = None,
        src: str | None = None,
        timeout: float = 300.0,
        connect_timeout: float = 10.0,
    ) -> None:
        self.space = space
        self.http_client = http_client
        self.hf_token = hf_token or None
        self.src = src or space
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._client: Client | None = None
        self._endpoints: dict[str, Any] | None = None
        self._lock = threading.Lock()

    @property
    def started(self) -> bool:
        return self._endpoints is not None

    def start(self) -> None:
        if self._endpoints is not None:
            return
        with self._lock:
            if self._endpoints is not None:
                return
            try:
                client = Client(
                    self.src,
                    hf_token=self.hf_token,
                    verbose=False,
                    download_files=False,
                    httpx_kwargs={"timeout": httpx.Timeout(self.timeout, connect=self.connect_timeout)},
                )
                info = client.view_api(print_info=False, return_format="dict") or {}
            except Exception as e:
                raise self._wrap(e, None, "could not connect") from e
            self._client = client
            self._endpoints = info.get("named_endpoints") or {}
            logger.info(
                "inference_session_started",
                extra={"space": self.space, "count": len(self._endpoints)},
            )

    def call(self, endpoint: str, named_inputs: dict[str, Any]) -> list[Any]:
        """Run one prediction and return the positional outputs."""
        values = self.layout(endpoint, named_inputs)
        with ExitStack() as stack:
            args = [self._encode(v, stack) for v in values]
            try:
                job = self._client.submit(*args, api_name=endpoint)
            except Exception as e:
                raise self._wrap(e, endpoint, "failed") from e
            try:
                result = job.result(timeout=self.timeout)
            except TimeoutError as e:
                job.cancel()
                raise InferenceError(f"{self.space}{endpoint} timed out", detail=self._detail(endpoint)) from e
            except Exception as e:
                raise self._wrap(e, endpoint, "failed") from e
        return self._as_outputs(endpoint, result)

    def layout(self, endpoint: str, named_inputs: dict[str, Any]) -> list[Any]:
        """Order named inputs by the endpoint's declared parameters, filling declared defaults."""
        self.start()
        schema = (self._endpoints or {}).get(endpoint)
        if schema is None:
            raise InferenceError(
                f"{self.space} has no endpoint {endpoint}",
                detail=self._detail(endpoint),
            )
        params = schema.get("parameters") or []
        known = {p.get("parameter_name") for p in params}
        unknown = sorted(set(named_inputs) - known)
        if unknown:
            raise InferenceError(
                f"{self.space}{endpoint}: unexpected inputs {', '.join(unknown)}",
                detail=self._detail(endpoint),
            )
        values = []
        for p in params:
            name = p.get("parameter_name")
            if name in named_inputs:
                values.append(named_inputs[name])
            elif p.get("parameter_has_default"):
                values.append(p.get("parameter_default"))
            else:
                values.append(None)
        return values

    def download(self, remote: RemoteFile) -> bytes:
        """Fetch a file output by its URL on the Space."""
        if not remote.url:
            raise InferenceError(f"{self.space}: file output {remote.path} has no url", detail=self._detail(None))
        headers = {"Authorization": f"Bearer {self.hf_token}"} if self.hf_token else {}
        try:
            response = self.http_client.get(remote.url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise self._wrap(e, None, f"download of {remote.url} failed") from e
        return response.content

    def _encode(self, value: Any, stack: ExitStack) -> Any:
        if isinstance(value, FileBlob):
            return handle_file(self._spill(value, stack))
        if isinstance(value, list):
            return [self._encode(v, stack) for v in value]
        return value

    @staticmethod
    def _spill(blob: FileBlob, stack: ExitStack) -> str:
        # gradio_client uploads from a path; the file lives until the call returns
        suffix = os.path.splitext(blob.filename or "")[1] or extension_for(blob.mime_type)
        f = tempfile.NamedTemporaryFile(delete=False, suffix=suffix)
        stack.callback(os.remove, f.name)
        with f:
            f.write(blob.content)
        return f.name

    def _as_outputs(self, endpoint: str, result: Any) -> list[Any]:
        returns = ((self._endpoints or {}).get(endpoint) or {}).get("returns") or []
        if len(returns) == 1:
            return [result]
        if isinstance(result, (list, tuple)):
            return list(result)
        return [result]

    def _wrap(self, error: Exception, endpoint: str | None, what: str) -> InferenceError:
        if isinstance(error, InferenceError):
            return error
        detail = self._detail(endpoint)
        if isinstance(error, httpx.HTTPStatusError):
            detail["http_status"] = error.response.status_code
        if isinstance(error, AppError):
            message = str(error) or "backend error"
        else:
            message = f"{type(error).__name__}: {error}"
        return InferenceError(f"{self.space}{endpoint or ''} {what}: {message[:500]}", detail=detail)

    def _detail(self, endpoint: str | None) -> dict[str, Any]:
        return {"space": self.space, "endpoint": endpoint}
