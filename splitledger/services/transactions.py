from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import Store, StoreError, utcnow
from ..money import AmountLike
from ..results import Failure, Result, Success, invalid_state, not_found
from .accumulator import compute_deltas
from .validation import (
    check_share_sum,
    get_group,
    lock_balances,
    member_ids,
    parse_amount,
    parse_date,
    parse_shares,
    split_equal,
    store_guarded,
)

logger = structlog.get_logger(__name__)


@store_guarded("record transaction")
def record_transaction(store: Store, group_id: int, payer_id: int, total_amount: AmountLike,
                       shares: Iterable[Tuple[int, AmountLike]], transaction_date: Union[date, str],
                       description: Optional[str] = None) -> Result[schemas.TransactionOut]:
    """Record a transaction and apply its balance deltas as one atomic unit."""
    log = logger.bind(group_id=group_id, payer_id=payer_id)

    total = parse_amount(total_amount, "total_amount", positive=True)
    if isinstance(total, Failure):
        return _rejected(log, total)
    parsed = parse_shares(shares)
    if isinstance(parsed, Failure):
        return _rejected(log, parsed)
    when = parse_date(transaction_date)
    if isinstance(when, Failure):
        return _rejected(log, when)

    with store.transaction() as session:
        outcome = _apply_transaction(session, group_id, payer_id, total, parsed, when, description)
    if isinstance(outcome, Failure):
        return _rejected(log, outcome)

    log.info("transaction_recorded", transaction_id=outcome, total_amount=str(total),
             participants=len(parsed))
    return get_transaction(store, outcome)


def _rejected(log, failure: Failure) -> Failure:
    log.info("transaction_rejected", kind=failure.kind.value, reason=failure.message)
    return failure


def _apply_transaction(session: Session, group_id: int, payer_id: int, total: Decimal,
                       shares: List[Tuple[int, Decimal]], when: date,
                       description: Optional[str]) -> Union[int, Failure]:
    group = get_group(session, group_id)
    if isinstance(group, Failure):
        return group

    participant_ids = [uid for uid, _ in shares]
    involved = [payer_id, *participant_ids]
    # Held until commit: settlements and member removals on these rows wait for us.
    lock_balances(session, group_id, involved)
    members = member_ids(session, group_id, involved)
    if payer_id not in members:
        return invalid_state("Payer is not a member of this group", user_id=payer_id)
    for uid in participant_ids:
        if uid not in members:
            return invalid_state(f"Participant with ID {uid} is not in this group", user_id=uid)
    failure = check_share_sum(total, shares)
    if failure is not None:
        return failure

    txn = models.Transaction(group_id=group_id, paid_by=payer_id, total_amount=total,
                             description=description, transaction_date=when)
    txn.shares = [models.TransactionShare(user_id=uid, share_amount=amount) for uid, amount in shares]
    session.add(txn)
    session.flush()

    now = utcnow()
    for user_id, delta in sorted(compute_deltas(total, payer_id, shares).items()):
        stmt = (
            update(models.Balance)
            .where(models.Balance.group_id == group_id, models.Balance.user_id == user_id)
            .values(balance=models.Balance.balance + delta, last_updated=now)
            .execution_options(synchronize_session=False)
        )
        if session.execute(stmt).rowcount != 1:
            raise StoreError(f"No balance row for user {user_id} in group {group_id}")
    return txn.id


def record_equal_split(store: Store, group_id: int, payer_id: int, total_amount: AmountLike,
                       participant_ids: Sequence[int], transaction_date: Union[date, str],
                       description: Optional[str] = None) -> Result[schemas.TransactionOut]:
    total = parse_amount(total_amount, "total_amount", positive=True)
    if isinstance(total, Failure):
        return total
    shares = split_equal(total, payer_id, list(participant_ids))
    if isinstance(shares, Failure):
        return shares
    return record_transaction(store, group_id, payer_id, total, shares, transaction_date, description)


@store_guarded("load transaction")
def get_transaction(store: Store, transaction_id: int) -> Result[schemas.TransactionOut]:
    with store.snapshot() as session:
        row = session.execute(
            select(models.Transaction, models.Group.name, models.User.name)
            .join(models.Group, models.Transaction.group_id == models.Group.id)
            .join(models.User, models.Transaction.paid_by == models.User.id)
            .where(models.Transaction.id == transaction_id)
        ).first()
        if row is None:
            return not_found("Transaction not found", transaction_id=transaction_id)
        txn, group_name, payer_name = row
        participants = session.execute(
            select(models.TransactionShare.user_id, models.User.name, models.TransactionShare.share_amount)
            .join(models.User, models.TransactionShare.user_id == models.User.id)
            .where(models.TransactionShare.transaction_id == transaction_id)
            .order_by(models.TransactionShare.id)
        ).all()
        return Success(schemas.TransactionOut(
            id=txn.id,
            group_id=txn.group_id,
            group_name=group_name,
            paid_by=txn.paid_by,
            paid_by_name=payer_name,
            total_amount=txn.total_amount,
            description=txn.description,
            transaction_date=txn.transaction_date,
            created_at=txn.created_at,
            participants=[
                schemas.ShareOut(user_id=uid, user_name=name, share_amount=amount)
                for uid, name, amount in participants
            ],
        ))


@store_guarded("list transactions")
def list_group_transactions(store: Store, group_id: int, limit: int = 50,
                            offset: int = 0) -> Result[List[schemas.TransactionSummaryOut]]:
    with store.snapshot() as session:
        group = get_group(session, group_id)
        if isinstance(group, Failure):
            return group
        participant_count = (
            select(func.count(models.TransactionShare.id))
            .where(models.TransactionShare.transaction_id == models.Transaction.id)
            .correlate(models.Transaction)
            .scalar_subquery()
        )
        rows = session.execute(
            select(models.Transaction, models.User.name, participant_count)
            .join(models.User, models.Transaction.paid_by == models.User.id)
            .where(models.Transaction.group_id == group_id)
            .order_by(models.Transaction.created_at.desc(), models.Transaction.id.desc())
            .limit(limit)
            .offset(offset)
        ).all()
        return Success([
            schemas.TransactionSummaryOut(
                id=txn.id,
                total_amount=txn.total_amount,
                description=txn.description,
                transaction_date=txn.transaction_date,
                paid_by_name=payer_name,
                participant_count=count,
                created_at=txn.created_at,
            )
            for txn, payer_name, count in rows
        ])
