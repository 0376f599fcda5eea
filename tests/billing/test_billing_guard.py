"""
Billing guard: reserve before the call, debit after success, release on failure.
"""
import threading

import pytest

from app.core.errors import InsufficientCreditsError
from app.services.billing.guard import BillingGuard
from app.services.credits.service import CreditService
from app.services.platform.settings_service import BillableOperation, PlatformSettingsService


def test_default_prices(db):
    platform = PlatformSettingsService(db)
    assert platform.price_for(BillableOperation.IMAGE) == 25
    assert platform.price_for(BillableOperation.VIDEO) == 45


def test_price_update_rejects_negative(db):
    platform = PlatformSettingsService(db)
    with pytest.raises(ValueError):
        platform.update({"image_token_price": -1})
    assert platform.update({"video_token_price": 50})["video_token_price"] == 50


def test_reserve_rejected_when_balance_short(db):
    CreditService(db).credit("b1", "c1", 24)
    guard = BillingGuard(db)
    assert guard.check_and_reserve("b1", "c1", BillableOperation.IMAGE, "job-1") is False
    assert guard.credits.balance("b1", "c1") == 24


def test_metered_success_debits_exactly_once(db):
    CreditService(db).credit("b1", "c1", 100)
    guard = BillingGuard(db)
    with guard.metered("job-1", "b1", "c1", BillableOperation.VIDEO):
        assert guard.credits.balance("b1", "c1") == 55
    account = guard.credits.get_account("b1", "c1")
    assert account.balance == 55
    assert account.lifetime_spent == 45


def test_metered_failure_releases(db):
    CreditService(db).credit("b1", "c1", 100)
    guard = BillingGuard(db)
    with pytest.raises(RuntimeError):
        with guard.metered("job-1", "b1", "c1", BillableOperation.IMAGE):
            raise RuntimeError("backend down")
    account = guard.credits.get_account("b1", "c1")
    assert account.balance == 100
    assert account.lifetime_spent == 0


def test_metered_insufficient_never_runs_body(db):
    guard = BillingGuard(db)
    ran = []
    with pytest.raises(InsufficientCreditsError, match="Insufficient tokens"):
        with guard.metered("job-1", "b1", "c1", BillableOperation.IMAGE):
            ran.append(True)
    assert ran == []
    assert guard.credits.balance("b1", "c1") == 0


def test_debit_without_prior_reserve(db):
    CreditService(db).credit("b1", "c1", 30)
    guard = BillingGuard(db)
    guard.debit(BillableOperation.IMAGE, "b1", "c1", "job-1")
    assert guard.credits.balance("b1", "c1") == 5
    with pytest.raises(InsufficientCreditsError):
        guard.debit(BillableOperation.IMAGE, "b1", "c1", "job-2")


def test_resumed_job_without_funds_is_rejected_before_the_call(db):
    CreditService(db).credit("b1", "c1", 25)
    guard = BillingGuard(db)
    with pytest.raises(RuntimeError):
        with guard.metered("job-1", "b1", "c1", BillableOperation.IMAGE):
            raise RuntimeError("worker lost")
    assert guard.check_and_reserve("b1", "c1", BillableOperation.IMAGE, "job-2") is True

    ran = []
    with pytest.raises(InsufficientCreditsError):
        with guard.metered("job-1", "b1", "c1", BillableOperation.IMAGE):
            ran.append(True)
    assert ran == []
    assert guard.credits.balance("b1", "c1") == 0


def test_concurrent_reservations_cannot_double_spend(session_factory):
    setup = session_factory()
    CreditService(setup).credit("b1", "c1", 25)
    PlatformSettingsService(setup).get_or_create()
    setup.close()

    barrier = threading.Barrier(2)
    results: dict[str, bool] = {}
    errors: list[BaseException] = []

    def reserve(job_id: str) -> None:
        session = session_factory()
        try:
            guard = BillingGuard(session)
            barrier.wait()
            results[job_id] = guard.check_and_reserve("b1", "c1", BillableOperation.IMAGE, job_id)
        except BaseException as e:
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=reserve, args=(f"job-{i}",)) for i in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(30)

    assert errors == []
    assert sorted(results.values()) == [False, True]
    check = session_factory()
    assert CreditService(check).balance("b1", "c1") == 0
    check.close()
