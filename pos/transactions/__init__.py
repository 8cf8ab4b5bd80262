"""Transactions package: models, state machine and settlement."""
from .constants import MovementType, TransactionStatus, TransactionType
from .models import Transaction, TransactionItem, TransactionPage
from .service import TransactionManager, get_transaction_manager

__all__ = [
    "MovementType",
    "Transaction",
    "TransactionItem",
    "TransactionManager",
    "TransactionPage",
    "TransactionStatus",
    "TransactionType",
    "get_transaction_manager",
]
