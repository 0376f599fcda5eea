"""
Webhook notifier: body shape, bounded best-effort delivery.
"""
import json
import unittest

import httpx

from app.services.webhooks.notifier import WebhookNotifier, build_webhook_body


class TestWebhookNotifier(unittest.TestCase):
    def test_completed_body(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(204)

        notifier = WebhookNotifier(transport=httpx.MockTransport(handler))
        status = notifier.notify("https://hooks.example.com/x", "job-1", "completed", result={"measurements": {"chest": 90}})

        self.assertEqual(status, 204)
        self.assertEqual(seen, [{"jobId": "job-1", "status": "completed", "data": {"measurements": {"chest": 90}}}])

    def test_failed_body_has_error_only(self):
        self.assertEqual(
            build_webhook_body("job-1", "failed", error="Insufficient tokens"),
            {"jobId": "job-1", "status": "failed", "error": "Insufficient tokens"},
        )

    def test_unreachable_url_is_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        notifier = WebhookNotifier(timeout=1, transport=httpx.MockTransport(handler))
        self.assertIsNone(notifier.notify("https://down.example/x", "job-1", "failed", error="boom"))

    def test_timeout_is_swallowed(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        notifier = WebhookNotifier(timeout=1, transport=httpx.MockTransport(handler))
        self.assertIsNone(notifier.notify("https://slow.example/x", "job-1", "completed"))

    def test_error_status_is_returned(self):
        notifier = WebhookNotifier(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        self.assertEqual(notifier.notify("https://hooks.example.com/x", "job-1", "completed"), 500)

    def test_no_url_is_noop(self):
        def handler(request):
            raise AssertionError("must not be called")

        notifier = WebhookNotifier(transport=httpx.MockTransport(handler))
        self.assertIsNone(notifier.notify(None, "job-1", "completed"))
        self.assertIsNone(notifier.notify("", "job-1", "completed"))

    def test_malformed_url_is_swallowed(self):
        def handler(request):
            raise AssertionError("must not be called")

        notifier = WebhookNotifier(transport=httpx.MockTransport(handler))
        self.assertIsNone(notifier.notify("http://hooks.example.com:port/x", "job-1", "completed"))
