"""
Webhook notifier: one best-effort POST per terminal job.

Body: {"jobId", "status": "completed"|"failed", "data"?, "error"?}
Delivery problems are logged and counted; they never reach the caller.
"""
import logging
from typing import Any

import httpx

from app.utils.metrics import webhook_deliveries_total

logger = logging.getLogger(__name__)


def build_webhook_body(job_id: str, state: str, result: Any = None, error: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"jobId": job_id, "status": state}
    if result is not None:
        body["data"] = result
    if error is not None:
        body["error"] = error
    return body


class WebhookNotifier:
    def __init__(self, timeout: float = 10.0, transport: httpx.BaseTransport | None = None) -> None:
        self.timeout = timeout
        self.transport = transport

    def notify(
        self,
        webhook_url: str | None,
        job_id: str,
        state: str,
        result: Any = None,
        error: str | None = None,
    ) -> int | None:
        """POST the outcome. Returns the HTTP status, or None when nothing was delivered."""
        if not webhook_url:
            return None
        body = build_webhook_body(job_id, state, result, error)
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(webhook_url, json=body)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            webhook_deliveries_total.labels(status="error").inc()
            logger.warning(
                "webhook_delivery_failed",
                extra={"job_id": job_id, "webhook_url": webhook_url, "error": f"{type(e).__name__}: {e}"[:300]},
            )
            return None
        if response.is_success:
            webhook_deliveries_total.labels(status="success").inc()
            logger.info(
                "webhook_delivered",
                extra={"job_id": job_id, "webhook_url": webhook_url, "status_code": response.status_code},
            )
        else:
            webhook_deliveries_total.labels(status="error").inc()
            logger.warning(
                "webhook_rejected",
                extra={"job_id": job_id, "webhook_url": webhook_url, "status_code": response.status_code},
            )
        return response.status_code
