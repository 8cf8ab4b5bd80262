"""
API Pydantic Models

Request bodies for the cart and transaction endpoints. Money and rates
travel as decimal strings; JSON floats are rejected.
"""
from typing import Optional

from pydantic import BaseModel, field_validator


def _decimal_string(v):
    if v is None:
        return v
    if isinstance(v, bool) or isinstance(v, float):
        raise ValueError("must be a decimal string")
    if isinstance(v, int):
        return str(v)
    return v


# ==================== CART MODELS ====================

class CreateCartRequest(BaseModel):
    store_id: str
    cashier_id: str | None = None  # defaults to the caller
    customer_id: str | None = None
    metadata: dict | None = None


class AddCartItemRequest(BaseModel):
    product_id: str
    quantity: int
    unit_price: str | None = None
    discount: str | None = None
    metadata: dict | None = None

    @field_validator("unit_price", "discount", mode="before")
    @classmethod
    def check_decimal(cls, v):
        return _decimal_string(v)


class UpdateCartItemRequest(BaseModel):
    quantity: int | None = None  # 0 removes the line
    discount: str | None = None
    metadata: dict | None = None

    @field_validator("discount", mode="before")
    @classmethod
    def check_decimal(cls, v):
        return _decimal_string(v)


# ==================== TRANSACTION MODELS ====================

class CreateTransactionRequest(BaseModel):
    store_id: str
    cashier_id: str | None = None
    type: str
    payment_method: str
    customer_id: str | None = None
    cart_id: str | None = None
    payment_reference: str | None = None
    notes: str | None = None
    metadata: dict | None = None


class ProcessPaymentRequest(BaseModel):
    payment_method: str
    amount: str
    payment_reference: Optional[str] = None
    metadata: Optional[dict] = None

    @field_validator("amount", mode="before")
    @classmethod
    def check_decimal(cls, v):
        return _decimal_string(v)


class VoidTransactionRequest(BaseModel):
    reason: str
