"""Transaction constants and enums."""
from enum import Enum
from typing import Dict, Set


class TransactionType(str, Enum):
    """Kinds of register transactions."""
    SALE = "sale"
    RETURN = "return"
    VOID = "void"


class TransactionStatus(str, Enum):
    """
    Transaction status lifecycle.

    Flow:
        pending -> completed -> voided
                -> failed

    - pending: Created from a cart, awaiting payment
    - completed: Payment settled, inventory adjusted (once)
    - failed: Rejected by validation before any side effect (final)
    - voided: Settlement reversed, inventory restored (final)
    """
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    VOIDED = "voided"


class MovementType(str, Enum):
    """inventory_movements.movement_type values."""
    SALE = "sale"
    RETURN = "return"
    VOID_REVERSAL = "void_reversal"


# Allowed status transitions
TRANSITIONS: Dict[str, Set[str]] = {
    TransactionStatus.PENDING.value: {TransactionStatus.COMPLETED.value, TransactionStatus.FAILED.value},
    TransactionStatus.COMPLETED.value: {TransactionStatus.VOIDED.value},
    TransactionStatus.FAILED.value: set(),
    TransactionStatus.VOIDED.value: set(),
}

# Stock direction per transaction type when settled
STOCK_DIRECTION: Dict[str, int] = {
    TransactionType.SALE.value: -1,
    TransactionType.RETURN.value: 1,
    TransactionType.VOID.value: 0,
}

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 1000


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, set())
