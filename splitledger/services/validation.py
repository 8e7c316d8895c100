"""Checks shared by the ledger operations; none of them writes to the store."""

import re
from datetime import date, datetime
from decimal import Decimal
from functools import wraps
from typing import Iterable, List, Optional, Sequence, Set, Tuple, Union

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models
from ..database import StoreError
from ..money import AmountLike, MAX_AMOUNT, SHARE_SUM_TOLERANCE, ZERO, split_down, to_money
from ..results import Failure, invalid_input, not_found, store_failure

logger = structlog.get_logger(__name__)

_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)


def store_guarded(operation: str):
    """Turn a StoreError escaping the wrapped operation into a STORE_FAILURE result."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except StoreError as exc:
                logger.error("store_failure", operation=operation, error=str(exc))
                return store_failure(f"Could not {operation}", error=str(exc))
        return wrapper
    return decorator


def parse_amount(value: AmountLike, field: str, *, positive: bool = False) -> Union[Decimal, Failure]:
    try:
        amount = to_money(value)
    except (TypeError, ValueError) as exc:
        return invalid_input(f"Invalid {field}: {exc}", field=field)
    if positive and amount <= ZERO:
        return invalid_input(f"{field} must be greater than zero", field=field)
    if amount < ZERO:
        return invalid_input(f"{field} must not be negative", field=field)
    if amount > MAX_AMOUNT:
        return invalid_input(f"{field} must not exceed {MAX_AMOUNT}", field=field)
    return amount


def parse_date(value: Union[date, str]) -> Union[date, Failure]:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        if not _ISO_DATE.fullmatch(value):
            raise ValueError(value)
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return invalid_input(f"Date must be YYYY-MM-DD, got {value!r}", field="transaction_date")


def parse_shares(shares: Iterable[Tuple[int, AmountLike]]) -> Union[List[Tuple[int, Decimal]], Failure]:
    parsed: List[Tuple[int, Decimal]] = []
    seen: Set[int] = set()
    for user_id, share_amount in shares:
        if user_id in seen:
            return invalid_input(f"Participant {user_id} is listed more than once", user_id=user_id)
        seen.add(user_id)
        amount = parse_amount(share_amount, "share_amount")
        if isinstance(amount, Failure):
            return amount
        parsed.append((user_id, amount))
    if not parsed:
        return invalid_input("At least one participant is required")
    return parsed


def check_share_sum(total_amount: Decimal, shares: Sequence[Tuple[int, Decimal]]) -> Optional[Failure]:
    share_sum = sum((amount for _, amount in shares), ZERO)
    # Amounts are whole cents, so anything under one cent apart is an exact match.
    if abs(share_sum - total_amount) >= SHARE_SUM_TOLERANCE:
        return invalid_input(
            f"Participant shares ({share_sum}) do not match total amount ({total_amount})",
            share_sum=str(share_sum), total_amount=str(total_amount),
        )
    return None


def split_equal(total_amount: Decimal, payer_id: int,
                participant_ids: Sequence[int]) -> Union[List[Tuple[int, Decimal]], Failure]:
    """Equal shares rounded down; leftover cents go to the payer, else the first participant."""
    if not participant_ids:
        return invalid_input("Participants cannot be empty.")
    if len(set(participant_ids)) != len(participant_ids):
        return invalid_input("Participants must be unique.")
    per = split_down(total_amount, len(participant_ids))
    shares = {uid: per for uid in participant_ids}
    residue = total_amount - per * len(participant_ids)
    if residue:
        target = payer_id if payer_id in shares else participant_ids[0]
        shares[target] += residue
    return [(uid, shares[uid]) for uid in participant_ids]


def get_group(session: Session, group_id: int) -> Union[models.Group, Failure]:
    group = session.get(models.Group, group_id)
    if group is None:
        return not_found("Group not found", group_id=group_id)
    return group


def get_user(session: Session, user_id: int) -> Union[models.User, Failure]:
    user = session.get(models.User, user_id)
    if user is None:
        return not_found(f"User with ID {user_id} not found", user_id=user_id)
    return user


def member_ids(session: Session, group_id: int, user_ids: Iterable[int]) -> Set[int]:
    """Subset of user_ids that are current members of the group."""
    stmt = select(models.Membership.user_id).where(
        models.Membership.group_id == group_id,
        models.Membership.user_id.in_(set(user_ids)),
    )
    return set(session.scalars(stmt))


def is_member(session: Session, group_id: int, user_id: int) -> bool:
    return user_id in member_ids(session, group_id, [user_id])


def lock_balances(session: Session, group_id: int,
                  user_ids: Optional[Iterable[int]] = None) -> List[models.Balance]:
    """
    Balance rows of the group, locked for the rest of the unit of work.

    Rows are always locked in user id order so that concurrent units on the
    same group cannot deadlock.
    """
    stmt = select(models.Balance).where(models.Balance.group_id == group_id)
    if user_ids is not None:
        stmt = stmt.where(models.Balance.user_id.in_(set(user_ids)))
    stmt = stmt.order_by(models.Balance.user_id).with_for_update()
    return list(session.scalars(stmt))
