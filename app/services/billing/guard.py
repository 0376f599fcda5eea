"""
Billing guard for metered inference.

Order of operations per job:
    reserve (balance >= price, atomic) -> inference call -> debit
    reserve (balance >= price, atomic) -> failure        -> release
A job that cannot afford the price never reaches the inference backend, and a
job that fails is never charged.
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from app.core.errors import InsufficientCreditsError, PipelineError
from app.services.credits.service import CreditService
from app.services.platform.settings_service import BillableOperation, PlatformSettingsService
from app.utils.metrics import balance_rejected_total

logger = logging.getLogger(__name__)


class BillingGuard:
    def __init__(self, db: Session) -> None:
        self.credits = CreditService(db)
        self.platform = PlatformSettingsService(db)

    def check_and_reserve(
        self,
        business_id: str | None,
        customer_id: str | None,
        operation: BillableOperation,
        job_id: str,
    ) -> bool:
        operation = BillableOperation(operation)
        price = self.platform.price_for(operation)
        allowed = self.credits.hold(business_id, customer_id, job_id, price, feature=operation.value)
        if not allowed:
            balance_rejected_total.labels(feature=operation.value).inc()
            logger.info(
                "billing_hold_rejected",
                extra={
                    "job_id": job_id,
                    "business_id": business_id,
                    "customer_id": customer_id,
                    "operation": operation.value,
                    "amount": price,
                },
            )
        return allowed

    def debit(
        self,
        operation: BillableOperation,
        business_id: str | None,
        customer_id: str | None,
        job_id: str,
    ) -> None:
        """Charge the job. Captures the existing hold, or reserves and captures when there is none."""
        if self.credits.capture(business_id, customer_id, job_id):
            self._log_debit(operation, business_id, customer_id, job_id)
            return
        if not self.check_and_reserve(business_id, customer_id, operation, job_id):
            raise InsufficientCreditsError()
        if not self.credits.capture(business_id, customer_id, job_id):
            raise PipelineError(f"Credit hold for job {job_id} was already released")
        self._log_debit(operation, business_id, customer_id, job_id)

    def release(self, business_id: str | None, customer_id: str | None, job_id: str) -> bool:
        released = self.credits.release(business_id, customer_id, job_id)
        if released:
            logger.info(
                "billing_hold_released",
                extra={"job_id": job_id, "business_id": business_id, "customer_id": customer_id},
            )
        return released

    @contextmanager
    def metered(
        self,
        job_id: str,
        business_id: str | None,
        customer_id: str | None,
        operation: BillableOperation,
    ) -> Iterator[None]:
        """Wrap one paid unit of work: reserve before, debit after success, release on error."""
        if not self.check_and_reserve(business_id, customer_id, operation, job_id):
            raise InsufficientCreditsError()
        try:
            yield
        except BaseException:
            self.release(business_id, customer_id, job_id)
            raise
        self.debit(operation, business_id, customer_id, job_id)

    def _log_debit(self, operation, business_id, customer_id, job_id) -> None:
        logger.info(
            "billing_debited",
            extra={
                "job_id": job_id,
                "business_id": business_id,
                "customer_id": customer_id,
                "operation": BillableOperation(operation).value,
            },
        )
