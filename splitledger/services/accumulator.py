from decimal import Decimal
from typing import Dict, Iterable, Tuple

from ..money import AmountLike, to_money


def compute_deltas(total_amount: AmountLike, payer_id: int,
                   shares: Iterable[Tuple[int, AmountLike]]) -> Dict[int, Decimal]:
    """Signed balance change per user: payer +total, each participant -share."""
    deltas: Dict[int, Decimal] = {payer_id: to_money(total_amount)}
    for user_id, share_amount in shares:
        deltas[user_id] = deltas.get(user_id, Decimal("0.00")) - to_money(share_amount)
    return deltas
