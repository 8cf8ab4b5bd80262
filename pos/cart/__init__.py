"""Cart package: models and manager facade."""
from .models import Cart, CartItem, CartStatus, calculate_line_amounts
from .service import CartManager, get_cart_manager

__all__ = [
    "Cart",
    "CartItem",
    "CartStatus",
    "CartManager",
    "calculate_line_amounts",
    "get_cart_manager",
]
