"""
Credit ledger: HOLD / CAPTURE / RELEASE per job, idempotent per (account, job, operation).
"""
import unittest

import pytest

from app.services.credits.service import CAPTURE, CREDIT, HOLD, RELEASE, CreditService


class TestCreditLedger:
    def test_unknown_subject_has_zero_balance(self, db):
        assert CreditService(db).balance("b1", "c1") == 0

    def test_credit_tops_up(self, db):
        svc = CreditService(db)
        account = svc.credit("b1", "c1", 100, reference="purchase-1")
        assert account.balance == 100
        assert account.lifetime_earned == 100
        items, total = svc.history("b1", "c1")
        assert total == 1
        assert items[0].operation == CREDIT

    def test_credit_must_be_positive(self, db):
        with pytest.raises(ValueError):
            CreditService(db).credit("b1", "c1", 0)

    def test_hold_short_balance_changes_nothing(self, db):
        svc = CreditService(db)
        svc.credit("b1", "c1", 10)
        assert svc.hold("b1", "c1", "job-1", 25) is False
        assert svc.balance("b1", "c1") == 10
        _, total = svc.history("b1", "c1")
        assert total == 1

    def test_hold_then_capture(self, db):
        svc = CreditService(db)
        svc.credit("b1", "c1", 100)
        assert svc.hold("b1", "c1", "job-1", 25, feature="image") is True
        assert svc.balance("b1", "c1") == 75
        assert svc.capture("b1", "c1", "job-1") is True
        account = svc.get_account("b1", "c1")
        assert account.balance == 75
        assert account.lifetime_spent == 25

    def test_hold_is_idempotent_per_job(self, db):
        svc = CreditService(db)
        svc.credit("b1", "c1", 100)
        assert svc.hold("b1", "c1", "job-1", 25)
        assert svc.hold("b1", "c1", "job-1", 25)
        assert svc.balance("b1", "c1") == 75

    def test_capture_twice_charges_once(self, db):
        svc = CreditService(db)
        svc.credit("b1", "c1", 100)
        svc.hold("b1", "c1", "job-1", 25)
        assert svc.capture("b1", "c1", "job-1")
        assert svc.capture("b1", "c1", "job-1")
        assert svc.get_account("b1", "c1").lifetime_spent == 25
        ops = [e.operation for e in svc.history("b1", "c1")[0]]
        assert ops.count(CAPTURE) == 1

    def test_release_refunds_hold(self, db):
        svc = CreditService(db)
        svc.credit("b1", "c1", 30)
        svc.hold("b1", "c1", "job-1", 25)
        assert svc.release("b1", "c1", "job-1") is True
        assert svc.balance("b1", "c1") == 30
        assert svc.release("b1", "c1", "job-1") is False
        assert svc.balance("b1", "c1") == 30

    def test_released_hold_cannot_be_captured(self, db):
        svc = CreditService(db)
        svc.credit("b1", "c1", 30)
        svc.hold("b1", "c1", "job-1", 25)
        svc.release("b1", "c1", "job-1")
        assert svc.capture("b1", "c1", "job-1") is False

    def test_captured_hold_cannot_be_released(self, db):
        svc = CreditService(db)
        svc.credit("b1", "c1", 30)
        svc.hold("b1", "c1", "job-1", 25)
        svc.capture("b1", "c1", "job-1")
        assert svc.release("b1", "c1", "job-1") is False
        assert svc.balance("b1", "c1") == 5

    def test_capture_without_hold(self, db):
        svc = CreditService(db)
        svc.credit("b1", "c1", 30)
        assert svc.capture("b1", "c1", "job-1") is False

    def test_released_hold_is_taken_again_from_balance(self, db):
        svc = CreditService(db)
        svc.credit("b1", "c1", 30)
        svc.hold("b1", "c1", "job-1", 25)
        svc.release("b1", "c1", "job-1")
        assert svc.hold("b1", "c1", "job-1", 25) is True
        assert svc.balance("b1", "c1") == 5
        assert svc.capture("b1", "c1", "job-1") is True
        assert svc.get_account("b1", "c1").lifetime_spent == 25

    def test_released_hold_needs_funds_again(self, db):
        svc = CreditService(db)
        svc.credit("b1", "c1", 1)
        svc.hold("b1", "c1", "job-1", 1)
        svc.release("b1", "c1", "job-1")
        assert svc.hold("b1", "c1", "job-2", 1) is True
        assert svc.hold("b1", "c1", "job-1", 1) is False
        assert svc.balance("b1", "c1") == 0
        assert svc.capture("b1", "c1", "job-1") is False


class TestSubjects(unittest.TestCase):
    def test_missing_ids_share_one_anonymous_account(self):
        from app.services.credits.service import _subject

        self.assertEqual(_subject(None, None), ("", ""))
        self.assertEqual(_subject("b1", None), ("b1", ""))


def test_ledger_operations_are_distinct():
    assert len({HOLD, CAPTURE, RELEASE, CREDIT}) == 4
