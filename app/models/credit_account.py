from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, UniqueConstraint

from app.db.base import Base


class CreditAccount(Base):
    """Spendable token balance of a billing subject (a business, or one of its customers)."""

    __tablename__ = "credit_accounts"
    __table_args__ = (
        UniqueConstraint("business_id", "customer_id", name="uq_credit_account_subject"),
        CheckConstraint("balance >= 0", name="ck_credit_account_balance_non_negative"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    # Empty string when the subject is the business itself; keeps the pair unique.
    business_id = Column(String, nullable=False, default="", index=True)
    customer_id = Column(String, nullable=False, default="", index=True)
    balance = Column(Integer, nullable=False, default=0)
    lifetime_earned = Column(Integer, nullable=False, default=0)
    lifetime_spent = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))
