"""Database Models - Pydantic models for catalog and inventory rows."""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from pos.services.money import to_decimal as _to_decimal


def decimal_from_db(v):
    # PostgREST serializes numeric columns as JSON numbers
    if isinstance(v, float):
        v = str(v)
    return _to_decimal(v)


class Product(BaseModel):
    """Catalog product as seen by the register."""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    sku: str
    price: Decimal
    tax_rate: Decimal = Decimal("0")
    is_active: bool = True
    stock_quantity: int = 0
    updated_at: Optional[datetime] = None

    @field_validator("price", "tax_rate", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return decimal_from_db(v)


class InventoryMovement(BaseModel):
    """Append-only stock movement written alongside a settlement or void."""
    model_config = ConfigDict(extra="ignore")

    id: str
    product_id: str
    quantity: int
    movement_type: str
    reference_type: str = "transaction_item"
    reference_id: str
    transaction_id: Optional[str] = None
    created_at: Optional[datetime] = None
