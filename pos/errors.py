"""
Error messages and exception hierarchy.

Message constants are shared by managers and routers to avoid string
duplication. Every domain failure is a POSError carrying a stable code and
the HTTP status the transport layer maps it to.
"""

# Cart errors
ERROR_CART_NOT_FOUND = "Cart not found"
ERROR_ITEM_NOT_FOUND = "Item not found in cart"
ERROR_CART_EMPTY = "Cart has no items"
ERROR_CART_MODIFIED = "Cart was modified by another request"

# Product errors
ERROR_PRODUCT_NOT_FOUND = "Product not found"
ERROR_PRODUCT_INACTIVE = "Product is inactive"

# Transaction errors
ERROR_TRANSACTION_NOT_FOUND = "Transaction not found"
ERROR_TRANSACTION_LOCKED = "Transaction is being processed by another request"
ERROR_TRANSACTION_NOT_PENDING = "Transaction cannot be processed"
ERROR_TRANSACTION_NOT_COMPLETED = "Only completed transactions can be voided"
ERROR_AMOUNT_MISMATCH = "Payment amount mismatch"

# Validation errors
ERROR_QUANTITY_NOT_POSITIVE = "Quantity must be greater than 0"
ERROR_VOID_REASON_REQUIRED = "Void reason is required"

# Infrastructure errors
ERROR_STORE_UNAVAILABLE = "Persistent store unavailable"
ERROR_CACHE_UNAVAILABLE = "Cache service unavailable"
ERROR_INTERNAL = "Internal server error"


class POSError(Exception):
    """Base error for the transaction pipeline."""

    code = "POS_ERROR"
    status_code = 500

    def __init__(self, message: str, code: str | None = None, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}


class NotFoundError(POSError):
    """Requested entity does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class CartNotFoundError(NotFoundError):
    def __init__(self, message: str = ERROR_CART_NOT_FOUND) -> None:
        super().__init__(message)


class ItemNotFoundError(NotFoundError):
    def __init__(self, message: str = ERROR_ITEM_NOT_FOUND) -> None:
        super().__init__(message)


class ProductNotFoundError(NotFoundError):
    def __init__(self, message: str = ERROR_PRODUCT_NOT_FOUND) -> None:
        super().__init__(message)


class TransactionNotFoundError(NotFoundError):
    def __init__(self, message: str = ERROR_TRANSACTION_NOT_FOUND) -> None:
        super().__init__(message)


class ValidationError(POSError):
    """Input rejected before any state change."""

    code = "VALIDATION_ERROR"
    status_code = 400


class ProductInactiveError(ValidationError):
    def __init__(self, message: str = ERROR_PRODUCT_INACTIVE) -> None:
        super().__init__(message)


class ConflictError(POSError):
    """A concurrent request holds or changed the resource. Safe to retry."""

    code = "CONFLICT"
    status_code = 409

    def __init__(self, message: str = ERROR_TRANSACTION_LOCKED) -> None:
        super().__init__(message)


class InvalidStateError(POSError):
    """Operation not allowed in the entity's current status."""

    code = "INVALID_STATE"
    status_code = 409


class AmountMismatchError(POSError):
    """Payment amount differs from the transaction total."""

    code = "AMOUNT_MISMATCH"
    status_code = 422


class InfrastructureError(POSError):
    """Store or cache unavailable."""

    code = "INFRASTRUCTURE_ERROR"
    status_code = 503


__all__ = [
    "POSError",
    "NotFoundError",
    "CartNotFoundError",
    "ItemNotFoundError",
    "ProductNotFoundError",
    "TransactionNotFoundError",
    "ValidationError",
    "ProductInactiveError",
    "ConflictError",
    "InvalidStateError",
    "AmountMismatchError",
    "InfrastructureError",
]
