from collections import defaultdict
from typing import List, Optional

import structlog
from sqlalchemy import select, update

from .. import models, schemas
from ..database import Store, utcnow
from ..money import ZERO
from ..results import Failure, Result, Success, invalid_state
from .validation import get_group, is_member, lock_balances, store_guarded

logger = structlog.get_logger(__name__)


@store_guarded("settle group")
def settle(store: Store, group_id: int, settled_by: int,
           description: Optional[str] = None) -> Result[schemas.SettlementOut]:
    """Reset every balance in the group to zero, keeping the prior amounts on the settlement."""
    with store.transaction() as session:
        group = get_group(session, group_id)
        if isinstance(group, Failure):
            return group
        balances = lock_balances(session, group_id)
        if not is_member(session, group_id, settled_by):
            logger.info("settlement_rejected", group_id=group_id, settled_by=settled_by)
            return invalid_state("You are not a member of this group", user_id=settled_by)

        settlement = models.Settlement(group_id=group_id, settled_by=settled_by, description=description)
        settlement.entries = [
            models.SettlementEntry(user_id=b.user_id, balance_before=b.balance) for b in balances
        ]
        session.add(settlement)
        session.execute(
            update(models.Balance)
            .where(models.Balance.group_id == group_id)
            .values(balance=ZERO, last_updated=utcnow())
            .execution_options(synchronize_session=False)
        )
        session.flush()
        settler = session.get(models.User, settled_by)
        result = schemas.SettlementOut(
            id=settlement.id,
            group_id=group_id,
            group_name=group.name,
            settled_by=settled_by,
            settled_by_name=settler.name,
            description=settlement.description,
            settled_at=settlement.settled_at,
            balances_before=[
                schemas.SettledBalanceOut(user_id=e.user_id, balance_before=e.balance_before)
                for e in settlement.entries
            ],
        )

    logger.info("group_settled", group_id=group_id, settlement_id=result.id,
                settled_by=settled_by, balances_reset=len(result.balances_before))
    return Success(result)


@store_guarded("list settlements")
def list_settlements(store: Store, group_id: int) -> Result[List[schemas.SettlementOut]]:
    with store.snapshot() as session:
        group = get_group(session, group_id)
        if isinstance(group, Failure):
            return group
        rows = session.execute(
            select(models.Settlement, models.User.name)
            .join(models.User, models.Settlement.settled_by == models.User.id)
            .where(models.Settlement.group_id == group_id)
            .order_by(models.Settlement.settled_at.desc(), models.Settlement.id.desc())
        ).all()
        entries = defaultdict(list)
        if rows:
            stmt = (
                select(models.SettlementEntry)
                .where(models.SettlementEntry.settlement_id.in_([s.id for s, _ in rows]))
                .order_by(models.SettlementEntry.user_id)
            )
            for entry in session.scalars(stmt):
                entries[entry.settlement_id].append(
                    schemas.SettledBalanceOut(user_id=entry.user_id, balance_before=entry.balance_before)
                )
        return Success([
            schemas.SettlementOut(
                id=s.id,
                group_id=s.group_id,
                group_name=group.name,
                settled_by=s.settled_by,
                settled_by_name=settler_name,
                description=s.description,
                settled_at=s.settled_at,
                balances_before=entries[s.id],
            )
            for s, settler_name in rows
        ])
