"""Transaction models - immutable snapshots of settled carts."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pos.services.money import format_money, format_rate
from pos.services.models import decimal_from_db
from pos.transactions.constants import TransactionStatus


class TransactionItem(BaseModel):
    """Snapshot of a cart line. Never recomputed after creation."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    product_id: str
    product_name: str = ""
    product_sku: str = ""
    quantity: int
    unit_price: Decimal
    discount: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    subtotal: Decimal
    discount_amount: Decimal = Decimal("0.00")
    tax: Decimal
    total: Decimal
    position: int = 0
    metadata: Optional[dict] = None

    @field_validator(
        "unit_price", "discount", "tax_rate", "subtotal", "discount_amount", "tax", "total",
        mode="before",
    )
    @classmethod
    def convert_to_decimal(cls, v):
        return decimal_from_db(v)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "unit_price": format_money(self.unit_price),
            "discount": format_rate(self.discount),
            "tax_rate": format_rate(self.tax_rate),
            "subtotal": format_money(self.subtotal),
            "discount_amount": format_money(self.discount_amount),
            "tax": format_money(self.tax),
            "total": format_money(self.total),
            "metadata": self.metadata,
        }


class Transaction(BaseModel):
    """Register transaction (sale, return or void)."""
    model_config = ConfigDict(extra="ignore")

    id: str
    store_id: str
    cashier_id: str
    customer_id: Optional[str] = None
    type: str
    status: str = TransactionStatus.PENDING.value
    cart_id: Optional[str] = None
    items: List[TransactionItem] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")
    total_discount: Decimal = Decimal("0.00")
    total_tax: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    payment_method: str
    payment_reference: Optional[str] = None
    receipt_number: str
    notes: Optional[str] = None
    metadata: Optional[dict] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None

    @field_validator("subtotal", "total_discount", "total_tax", "total", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return decimal_from_db(v)

    @classmethod
    def from_row(cls, row: dict) -> "Transaction":
        """Build from a transactions row with embedded transaction_items."""
        data = dict(row)
        raw_items = data.pop("transaction_items", None)
        if raw_items is None:
            raw_items = data.pop("items", None) or []
        data["items"] = sorted(raw_items, key=lambda item: item.get("position", 0))
        return cls(**data)

    def to_dict(self) -> dict:
        def _iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "store_id": self.store_id,
            "cashier_id": self.cashier_id,
            "customer_id": self.customer_id,
            "type": self.type,
            "status": self.status,
            "cart_id": self.cart_id,
            "items": [item.to_dict() for item in self.items],
            "subtotal": format_money(self.subtotal),
            "total_discount": format_money(self.total_discount),
            "total_tax": format_money(self.total_tax),
            "total": format_money(self.total),
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "receipt_number": self.receipt_number,
            "notes": self.notes,
            "metadata": self.metadata,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "completed_at": _iso(self.completed_at),
            "voided_at": _iso(self.voided_at),
        }


class TransactionPage(BaseModel):
    """One page of transaction history."""
    transactions: List[Transaction]
    total: int
    limit: int
    offset: int

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return (self.total + self.limit - 1) // self.limit

    def to_dict(self) -> dict:
        return {
            "transactions": [t.to_dict() for t in self.transactions],
            "pagination": {
                "total": self.total,
                "limit": self.limit,
                "offset": self.offset,
                "pages": self.pages,
            },
        }
