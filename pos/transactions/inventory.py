"""Inventory adjustment planning.

Stock changes are computed here and applied by the settle/void database
functions in the same database transaction as the status change.
"""
from typing import Iterable, List

from pos.transactions.constants import STOCK_DIRECTION, MovementType, TransactionType
from pos.transactions.models import TransactionItem


def plan_adjustments(
    items: Iterable[TransactionItem],
    transaction_type: str,
    reverse: bool = False,
) -> List[dict]:
    """
    Map transaction lines to signed stock deltas.

    Args:
        items: Transaction lines
        transaction_type: sale, return or void
        reverse: True when undoing a settlement (void)

    Returns:
        One dict per line: product_id, quantity_delta, movement_type and
        transaction_item_id. Empty for transaction types that move no stock.
    """
    direction = STOCK_DIRECTION.get(str(transaction_type), 0)
    if direction == 0:
        return []

    if reverse:
        direction = -direction
        movement_type = MovementType.VOID_REVERSAL.value
    elif transaction_type == TransactionType.RETURN.value:
        movement_type = MovementType.RETURN.value
    else:
        movement_type = MovementType.SALE.value

    return [
        {
            "product_id": item.product_id,
            "quantity_delta": direction * item.quantity,
            "movement_type": movement_type,
            "transaction_item_id": item.id,
        }
        for item in items
    ]
