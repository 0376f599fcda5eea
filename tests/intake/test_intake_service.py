"""
Intake: validation before enqueue, record before message.
"""
from unittest.mock import MagicMock

import pytest

from app.core.errors import JobValidationError
from app.queue.memory import InMemoryJobQueue
from app.services.intake.service import IntakeService
from app.services.jobs.service import JobService

from tests.helpers import file_payload


def test_submit_records_and_enqueues(db):
    queue = InMemoryJobQueue()
    job = IntakeService(db, queue).submit(
        "RunPrediction",
        {"front_image": file_payload(), "gender": "female"},
        business_id="b1",
        customer_id="c1",
        webhook_url="https://hooks.example.com/x",
    )

    assert job.state == "queued"
    delivery = queue.dequeue(timeout=0)
    assert delivery.job_id == job.job_id
    assert delivery.job_type == "RunPrediction"
    stored = JobService(db).get(job.job_id)
    assert stored.business_id == "b1"
    assert stored.webhook_url == "https://hooks.example.com/x"


@pytest.mark.parametrize(
    "job_type,payload,message",
    [
        ("RunPrediction", {"gender": "female"}, "front_image"),
        ("AutoMaskPredict", {"gender": "female"}, "Front image is required"),
        ("VideoPipeline", {}, "Video is required"),
        ("Avatar", {"ui_gender": "male"}, "Prediction JSON file is required"),
        ("EditGarment", {"base_image_url": ""}, "base_image_url"),
        ("GenerateOutfit", {"config": {}}, "garment_type"),
        ("RunPrediction", {"front_image": {"content_b64": "!!not base64!!"}}, "content_b64"),
        ("VideoPipeline", {"video": {"content_b64": ""}}, "content_b64"),
        ("Teleport", {}, "Unknown job type"),
    ],
)
def test_invalid_requests_are_rejected_before_enqueue(db, job_type, payload, message):
    queue = InMemoryJobQueue()
    with pytest.raises(JobValidationError, match=message):
        IntakeService(db, queue).submit(job_type, payload)
    assert queue.size() == 0


def test_webhook_url_must_be_http(db):
    with pytest.raises(JobValidationError):
        IntakeService(db, InMemoryJobQueue()).submit("Avatar", {"predictions_json": {}}, webhook_url="ftp://x")


def test_enqueue_failure_fails_the_record(db):
    queue = MagicMock()
    queue.enqueue.side_effect = ConnectionError("redis down")

    with pytest.raises(ConnectionError):
        IntakeService(db, queue).submit("Avatar", {"predictions_json": {"chest": 90}})

    from app.models.job import Job

    job = db.query(Job).one()
    assert job.state == "failed"
    assert job.error == "Enqueue failed: ConnectionError"


@pytest.mark.parametrize(
    "webhook_url",
    ["http://hooks.example.com:port/x", "not a url", "https://"],
)
def test_malformed_webhook_url_is_rejected_before_enqueue(db, webhook_url):
    queue = InMemoryJobQueue()
    with pytest.raises(JobValidationError, match="webhook_url"):
        IntakeService(db, queue).submit("Avatar", {"predictions_json": {}}, webhook_url=webhook_url)
    assert queue.size() == 0
