import logging
from uuid import uuid4

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.credit_account import CreditAccount
from app.models.credit_ledger import CreditLedgerEntry
from app.utils.metrics import token_operations_total

logger = logging.getLogger(__name__)

HOLD = "HOLD"
CAPTURE = "CAPTURE"
RELEASE = "RELEASE"
CREDIT = "CREDIT"


def _subject(business_id: str | None, customer_id: str | None) -> tuple[str, str]:
    return (business_id or "", customer_id or "")


class CreditService:
    """
    Token balances per (business, customer) and the ledger behind them.

    Spending is two-phase: HOLD atomically takes the amount off the balance,
    then CAPTURE finalizes it or RELEASE gives it back. Each (account, job,
    operation) triple is unique, so repeating a step for the same job is a no-op.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_account(self, business_id: str | None, customer_id: str | None) -> CreditAccount | None:
        business, customer = _subject(business_id, customer_id)
        return (
            self.db.query(CreditAccount)
            .filter(CreditAccount.business_id == business, CreditAccount.customer_id == customer)
            .populate_existing()
            .one_or_none()
        )

    def get_or_create_account(self, business_id: str | None, customer_id: str | None) -> CreditAccount:
        account = self.get_account(business_id, customer_id)
        if account:
            return account
        business, customer = _subject(business_id, customer_id)
        try:
            account = CreditAccount(business_id=business, customer_id=customer, balance=0)
            self.db.add(account)
            self.db.commit()
            self.db.refresh(account)
            return account
        except IntegrityError:
            # Created concurrently by another worker
            self.db.rollback()
            account = self.get_account(business_id, customer_id)
            if account is None:
                raise
            return account

    def balance(self, business_id: str | None, customer_id: str | None) -> int:
        account = self.get_account(business_id, customer_id)
        return account.balance if account else 0

    def credit(
        self,
        business_id: str | None,
        customer_id: str | None,
        amount: int,
        reference: str | None = None,
        feature: str | None = None,
        metadata: dict | None = None,
    ) -> CreditAccount:
        """Top up a balance (purchase, admin adjustment)."""
        if amount <= 0:
            raise ValueError("Credit amount must be positive")
        account = self.get_or_create_account(business_id, customer_id)
        self.db.execute(
            update(CreditAccount)
            .where(CreditAccount.id == account.id)
            .values(
                balance=CreditAccount.balance + amount,
                lifetime_earned=CreditAccount.lifetime_earned + amount,
            )
            .execution_options(synchronize_session=False)
        )
        self.db.add(
            CreditLedgerEntry(
                account_id=account.id,
                job_id=reference or str(uuid4()),
                operation=CREDIT,
                amount=amount,
                feature=feature,
                metadata_json=metadata,
            )
        )
        self.db.commit()
        token_operations_total.labels(operation=CREDIT).inc()
        return self.get_or_create_account(business_id, customer_id)

    def hold(
        self,
        business_id: str | None,
        customer_id: str | None,
        job_id: str,
        amount: int,
        feature: str | None = None,
    ) -> bool:
        """
        Atomically reserve `amount`. False when the balance is short; nothing changes then.

        A hold that is live or already captured counts as reserved. A released
        hold is taken again from the balance, so a resumed job pays up front
        just like a fresh one.
        """
        account = self.get_or_create_account(business_id, customer_id)
        held = self._ledger_entry(account.id, job_id, HOLD)
        if held is not None:
            if self._ledger_entry(account.id, job_id, RELEASE) is None:
                return True
            return self._rehold(account.id, job_id, amount, feature)
        try:
            res = self.db.execute(
                update(CreditAccount)
                .where(CreditAccount.id == account.id, CreditAccount.balance >= amount)
                .values(balance=CreditAccount.balance - amount)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                self.db.rollback()
                return False
            self.db.add(
                CreditLedgerEntry(account_id=account.id, job_id=job_id, operation=HOLD, amount=amount, feature=feature)
            )
            self.db.commit()
        except IntegrityError:
            # Same job held concurrently; the other hold stands
            self.db.rollback()
            return True
        token_operations_total.labels(operation=HOLD).inc()
        return True

    def _rehold(self, account_id: str, job_id: str, amount: int, feature: str | None) -> bool:
        # Dropping the RELEASE row re-arms the existing HOLD; only one caller wins it.
        dropped = self.db.execute(
            delete(CreditLedgerEntry)
            .where(
                CreditLedgerEntry.account_id == account_id,
                CreditLedgerEntry.job_id == job_id,
                CreditLedgerEntry.operation == RELEASE,
            )
            .execution_options(synchronize_session=False)
        )
        if dropped.rowcount == 0:
            self.db.rollback()
            return True
        res = self.db.execute(
            update(CreditAccount)
            .where(CreditAccount.id == account_id, CreditAccount.balance >= amount)
            .values(balance=CreditAccount.balance - amount)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount == 0:
            self.db.rollback()
            return False
        self.db.execute(
            update(CreditLedgerEntry)
            .where(
                CreditLedgerEntry.account_id == account_id,
                CreditLedgerEntry.job_id == job_id,
                CreditLedgerEntry.operation == HOLD,
            )
            .values(amount=amount, feature=feature)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        token_operations_total.labels(operation=HOLD).inc()
        return True

    def capture(self, business_id: str | None, customer_id: str | None, job_id: str) -> bool:
        """Finalize an existing hold as spent. False when there is no live hold to capture."""
        account = self.get_account(business_id, customer_id)
        if account is None:
            return False
        if self._ledger_entry(account.id, job_id, CAPTURE) is not None:
            return True
        if self._ledger_entry(account.id, job_id, RELEASE) is not None:
            return False
        held = self._ledger_entry(account.id, job_id, HOLD)
        if held is None:
            return False
        try:
            self.db.add(
                CreditLedgerEntry(
                    account_id=account.id, job_id=job_id, operation=CAPTURE, amount=held.amount, feature=held.feature
                )
            )
            self.db.execute(
                update(CreditAccount)
                .where(CreditAccount.id == account.id)
                .values(lifetime_spent=CreditAccount.lifetime_spent + held.amount)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return True
        token_operations_total.labels(operation=CAPTURE).inc()
        return True

    def release(self, business_id: str | None, customer_id: str | None, job_id: str) -> bool:
        """Return a live hold to the balance. False when there is nothing to release."""
        account = self.get_account(business_id, customer_id)
        if account is None:
            return False
        if self._ledger_entry(account.id, job_id, RELEASE) is not None:
            return False
        if self._ledger_entry(account.id, job_id, CAPTURE) is not None:
            return False
        held = self._ledger_entry(account.id, job_id, HOLD)
        if held is None:
            return False
        try:
            self.db.add(
                CreditLedgerEntry(
                    account_id=account.id, job_id=job_id, operation=RELEASE, amount=held.amount, feature=held.feature
                )
            )
            self.db.execute(
                update(CreditAccount)
                .where(CreditAccount.id == account.id)
                .values(balance=CreditAccount.balance + held.amount)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        token_operations_total.labels(operation=RELEASE).inc()
        return True

    def history(
        self,
        business_id: str | None,
        customer_id: str | None,
        page: int = 1,
        size: int = 20,
    ) -> tuple[list[CreditLedgerEntry], int]:
        """Ledger entries newest first, plus the total count."""
        account = self.get_account(business_id, customer_id)
        if account is None:
            return [], 0
        q = self.db.query(CreditLedgerEntry).filter(CreditLedgerEntry.account_id == account.id)
        total = q.count()
        items = (
            q.order_by(CreditLedgerEntry.created_at.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        return items, total

    def _ledger_entry(self, account_id: str, job_id: str, operation: str) -> CreditLedgerEntry | None:
        return (
            self.db.query(CreditLedgerEntry)
            .filter(
                CreditLedgerEntry.account_id == account_id,
                CreditLedgerEntry.job_id == job_id,
                CreditLedgerEntry.operation == operation,
            )
            .one_or_none()
        )
