"""
Error taxonomy of the job pipeline.

Handlers raise these; the dispatcher turns any of them into a FAILED job
record. Only JobValidationError ever reaches an API caller directly.
"""
from typing import Any


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class JobValidationError(PipelineError):
    """Missing or invalid input, rejected before the job is queued."""


class InsufficientCreditsError(PipelineError):
    def __init__(self, message: str = "Insufficient tokens"):
        super().__init__(message)


class InferenceError(PipelineError):
    """Raised when a remote inference call fails; detail holds space/endpoint/http_status for logging."""

    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class UnknownJobTypeError(PipelineError):
    def __init__(self, job_type: str):
        super().__init__(f"Unknown job type: {job_type}")
        self.job_type = job_type


class JobNotFoundError(PipelineError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class InvalidTransitionError(PipelineError):
    def __init__(self, job_id: str, current: str, target: str):
        super().__init__(f"Job {job_id} cannot move from {current} to {target}")
        self.job_id = job_id
        self.current = current
        self.target = target


class ObjectStoreError(PipelineError):
    pass
