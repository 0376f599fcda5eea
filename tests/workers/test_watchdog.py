"""
Stuck-job watchdog: times out old RUNNING jobs and refunds their holds.
"""
from unittest.mock import MagicMock

from app.services.billing.guard import BillingGuard
from app.services.credits.service import CreditService
from app.services.jobs.service import JobService
from app.services.platform.settings_service import BillableOperation
from app.services.webhooks.notifier import WebhookNotifier
from app.workers.tasks.watchdog_jobs import STUCK_JOB_ERROR, fail_stuck


def test_stuck_job_is_failed_and_refunded(db):
    jobs = JobService(db)
    CreditService(db).credit("b1", "c1", 50)
    job = jobs.create_job(
        "VideoPipeline", {"video_url": "https://x/v.mp4"}, business_id="b1", customer_id="c1",
        webhook_url="https://hooks.example.com/x",
    )
    jobs.mark_running(job.job_id)
    assert BillingGuard(db).check_and_reserve("b1", "c1", BillableOperation.VIDEO, job.job_id)
    assert CreditService(db).balance("b1", "c1") == 5

    notifier = MagicMock(spec=WebhookNotifier)
    notifier.notify.return_value = 200
    # Negative threshold: anything already running counts as stuck
    assert fail_stuck(db, notifier, threshold_minutes=-1) == 1

    stuck = jobs.get(job.job_id)
    assert stuck.state == "failed"
    assert stuck.error == STUCK_JOB_ERROR
    assert CreditService(db).balance("b1", "c1") == 50
    notifier.notify.assert_called_once()
    assert fail_stuck(db, notifier, threshold_minutes=-1) == 0


def test_fresh_jobs_are_left_alone(db):
    jobs = JobService(db)
    job = jobs.create_job("Avatar", {"predictions_json": {}})
    jobs.mark_running(job.job_id)
    assert fail_stuck(db, MagicMock(spec=WebhookNotifier), threshold_minutes=30) == 0
    assert jobs.get(job.job_id).state == "running"
