"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
jobs_created_total = Counter(
    "jobs_created_total",
    "Total number of jobs accepted at intake",
    ["job_type"],
)

jobs_completed_total = Counter(
    "jobs_completed_total",
    "Total number of completed jobs",
    ["job_type"],
)

jobs_failed_total = Counter(
    "jobs_failed_total",
    "Total number of failed jobs",
    ["job_type", "error_code"],
)

jobs_redelivered_total = Counter(
    "jobs_redelivered_total",
    "Deliveries of jobs that were already started or finished",
    ["outcome"],  # resumed, skipped_terminal
)

token_operations_total = Counter(
    "token_operations_total",
    "Total credit ledger operations",
    ["operation"],  # HOLD, CAPTURE, RELEASE, CREDIT
)

balance_rejected_total = Counter(
    "balance_rejected_total",
    "Total reservations rejected for insufficient balance",
    ["feature"],
)

inference_requests_total = Counter(
    "inference_requests_total",
    "Total inference backend calls",
    ["space", "endpoint", "status"],
)

webhook_deliveries_total = Counter(
    "webhook_deliveries_total",
    "Total webhook delivery attempts",
    ["status"],  # success, error
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
job_duration_seconds = Histogram(
    "job_duration_seconds",
    "Job processing duration",
    ["job_type"],
    buckets=[1, 5, 10, 30, 60, 120, 300, 600],
)

inference_request_duration_seconds = Histogram(
    "inference_request_duration_seconds",
    "Inference backend call duration",
    ["space"],
    buckets=[1, 5, 10, 30, 60, 120, 300],
)

# Gauges
active_jobs = Gauge(
    "active_jobs",
    "Currently running jobs",
)

queue_length = Gauge(
    "queue_length",
    "Current queue length",
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
