from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from app.db.base import Base, JSONType


class CreditLedgerEntry(Base):
    __tablename__ = "credit_ledger"
    __table_args__ = (UniqueConstraint("account_id", "job_id", "operation", name="uq_credit_ledger_idempotency"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    account_id = Column(String, ForeignKey("credit_accounts.id"), nullable=False, index=True)
    job_id = Column(String, nullable=False, index=True)
    operation = Column(String, nullable=False)  # HOLD, CAPTURE, RELEASE, CREDIT
    amount = Column(Integer, nullable=False)
    feature = Column(String, nullable=True)  # image, video
    metadata_json = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
