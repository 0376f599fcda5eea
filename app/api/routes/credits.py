from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.jobs import BalanceOut, LedgerEntryOut, LedgerHistoryOut
from app.services.credits.service import CreditService


router = APIRouter(prefix="/credits", tags=["credits"])


@router.get("/balance", response_model=BalanceOut)
def get_balance(
    business_id: str | None = None,
    customer_id: str | None = None,
    db: Session = Depends(get_db),
) -> BalanceOut:
    balance = CreditService(db).balance(business_id, customer_id)
    return BalanceOut(business_id=business_id, customer_id=customer_id, balance=balance)


@router.get("/history", response_model=LedgerHistoryOut)
def get_history(
    business_id: str | None = None,
    customer_id: str | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> LedgerHistoryOut:
    items, total = CreditService(db).history(business_id, customer_id, page=page, size=page_size)
    return LedgerHistoryOut(
        items=[LedgerEntryOut.model_validate(e) for e in items],
        total=total,
        page=page,
        page_size=page_size,
    )
