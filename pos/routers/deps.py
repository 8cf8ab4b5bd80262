"""
Shared Dependencies for Routers

Lazy-loaded manager singletons. Tests replace them through
app.dependency_overrides.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pos.cart import CartManager
    from pos.transactions import TransactionManager


def get_cart_manager_dep() -> "CartManager":
    """Get CartManager singleton (lazy loaded)"""
    from pos.cart import get_cart_manager
    return get_cart_manager()


def get_transaction_manager_dep() -> "TransactionManager":
    """Get TransactionManager singleton (lazy loaded)"""
    from pos.transactions import get_transaction_manager
    return get_transaction_manager()
