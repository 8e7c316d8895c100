from fastapi import APIRouter, Depends, Query, status
from ..database import Store
from ..deps import get_store, unwrap
from .. import schemas
from ..services import reports, settlements, transactions

router = APIRouter()

@router.post("", response_model=schemas.TransactionOut, status_code=status.HTTP_201_CREATED)
def create_transaction(data: schemas.TransactionCreate, store: Store = Depends(get_store)):
    shares = [(p.user_id, p.share_amount) for p in data.participants]
    return unwrap(transactions.record_transaction(store, data.group_id, data.paid_by, data.total_amount,
                                                  shares, data.transaction_date, data.description))

@router.post("/quick-split", response_model=schemas.TransactionOut, status_code=status.HTTP_201_CREATED)
def create_quick_split(data: schemas.QuickSplitCreate, store: Store = Depends(get_store)):
    return unwrap(transactions.record_equal_split(store, data.group_id, data.paid_by, data.total_amount,
                                                  data.participant_ids, data.transaction_date, data.description))

@router.get("/{transaction_id}", response_model=schemas.TransactionOut)
def get_transaction(transaction_id: int, store: Store = Depends(get_store)):
    return unwrap(transactions.get_transaction(store, transaction_id))

@router.get("/group/{group_id}", response_model=list[schemas.TransactionSummaryOut])
def list_group_transactions(group_id: int, limit: int = Query(default=50, ge=1, le=500),
                            offset: int = Query(default=0, ge=0), store: Store = Depends(get_store)):
    return unwrap(transactions.list_group_transactions(store, group_id, limit=limit, offset=offset))

@router.get("/group/{group_id}/balance-sheet", response_model=schemas.BalanceSheetOut)
def get_balance_sheet(group_id: int, store: Store = Depends(get_store)):
    return unwrap(reports.get_balance_sheet(store, group_id))

@router.post("/group/{group_id}/settle", response_model=schemas.SettlementOut, status_code=status.HTTP_201_CREATED)
def settle_group(group_id: int, data: schemas.SettleIn, store: Store = Depends(get_store)):
    return unwrap(settlements.settle(store, group_id, data.settled_by, data.description))

@router.get("/group/{group_id}/settlements", response_model=list[schemas.SettlementOut])
def list_group_settlements(group_id: int, store: Store = Depends(get_store)):
    return unwrap(settlements.list_settlements(store, group_id))
