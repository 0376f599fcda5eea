"""
Job record: one row per submitted inference job.

State lifecycle:
    queued -> running -> completed
                      -> failed
"""
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, Text

from app.db.base import Base, JSONType


class JobState(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED})


class JobType(str, Enum):
    RUN_PREDICTION = "RunPrediction"
    AUTO_MASK_PREDICT = "AutoMaskPredict"
    VIDEO_PIPELINE = "VideoPipeline"
    AVATAR = "Avatar"
    GENERATE_OUTFIT = "GenerateOutfit"
    EDIT_GARMENT = "EditGarment"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(Base):
    __tablename__ = "jobs"

    job_id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    # Plain string: a malformed descriptor must still be recordable so it can be failed.
    job_type = Column(String, nullable=False, index=True)
    payload = Column(JSONType, nullable=False, default=dict)
    state = Column(String, nullable=False, default=JobState.QUEUED.value, index=True)
    result = Column(JSONType, nullable=True)
    error = Column(Text, nullable=True)
    webhook_url = Column(String, nullable=True)
    business_id = Column(String, nullable=True, index=True)
    customer_id = Column(String, nullable=True, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    webhook_sent_at = Column(DateTime(timezone=True), nullable=True)
    webhook_status_code = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)
