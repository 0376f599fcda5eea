from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class JobSubmitIn(BaseModel):
    job_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    webhook_url: str | None = None
    business_id: str | None = None
    customer_id: str | None = None


class JobSubmitOut(BaseModel):
    job_id: str
    status: str


class JobStatusOut(BaseModel):
    job_id: str
    job_type: str
    status: str
    result: Any = None
    error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BalanceOut(BaseModel):
    business_id: str | None
    customer_id: str | None
    balance: int


class LedgerEntryOut(BaseModel):
    job_id: str
    operation: str
    amount: int
    feature: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class LedgerHistoryOut(BaseModel):
    items: list[LedgerEntryOut]
    total: int
    page: int
    page_size: int
