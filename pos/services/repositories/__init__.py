"""
Repository Pattern for Database Operations

- ProductRepository: catalog lookups (read-only)
- CartRepository: carts and their line sets
- TransactionRepository: transactions, receipt sequence, settlement and void
"""
from .cart_repo import CartRepository
from .product_repo import ProductRepository
from .transaction_repo import TransactionRepository

__all__ = [
    "CartRepository",
    "ProductRepository",
    "TransactionRepository",
]
