import structlog
from sqlalchemy import func, select

from .. import models, schemas
from ..database import Store
from ..results import Failure, Result, Success
from .validation import get_group, store_guarded

logger = structlog.get_logger(__name__)


@store_guarded("build balance sheet")
def get_balance_sheet(store: Store, group_id: int) -> Result[schemas.BalanceSheetOut]:
    """Member balances, transaction count and latest balance change, read from one snapshot."""
    with store.snapshot() as session:
        group = get_group(session, group_id)
        if isinstance(group, Failure):
            return group
        rows = session.execute(
            select(models.Balance.user_id, models.User.name, models.Balance.balance, models.Balance.last_updated)
            .join(models.User, models.Balance.user_id == models.User.id)
            .where(models.Balance.group_id == group_id)
            .order_by(models.Balance.user_id)
        ).all()
        total_transactions = session.scalar(
            select(func.count(models.Transaction.id)).where(models.Transaction.group_id == group_id)
        )

    updates = [last_updated for *_, last_updated in rows if last_updated is not None]
    sheet = schemas.BalanceSheetOut(
        group_id=group.id,
        group_name=group.name,
        members=[
            schemas.MemberBalanceOut(user_id=uid, user_name=name, balance=balance)
            for uid, name, balance, _ in rows
        ],
        total_transactions=total_transactions or 0,
        last_updated=max(updates) if updates else None,
    )
    logger.debug("balance_sheet_built", group_id=group_id, members=len(sheet.members))
    return Success(sheet)
