"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, List, NamedTuple, Optional

from pos.services.money import ZERO, format_money, format_rate, money_sum, round_money, to_decimal


class CartStatus(str, Enum):
    """
    Cart lifecycle.

    - active: being built at the register, freely mutable
    - completed: its transaction settled
    - abandoned: explicitly deleted
    """
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class SaveStatus(str, Enum):
    """Outcome of persisting a cart (pos_save_cart)."""
    SAVED = "saved"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


class CartSaveOutcome(NamedTuple):
    status: SaveStatus
    version: Optional[int] = None


class LineAmounts(NamedTuple):
    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal


def calculate_line_amounts(
    unit_price: Decimal,
    quantity: int,
    discount: Decimal,
    tax_rate: Decimal,
) -> LineAmounts:
    """
    Derive the money fields of one line.

    Each component is rounded to cents on its own and the total is their
    exact sum, so cart rollups built from these fields always satisfy
    total == subtotal - total_discount + total_tax.
    """
    subtotal = round_money(unit_price * quantity)
    discount_amount = round_money(subtotal * discount)
    tax = round_money((subtotal - discount_amount) * tax_rate)
    total = subtotal - discount_amount + tax
    return LineAmounts(subtotal, discount_amount, tax, total)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CartItem:
    """Single line in the cart (one per product)."""
    id: str
    product_id: str
    product_name: str
    product_sku: str
    quantity: int
    unit_price: Decimal
    discount: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    metadata: Optional[dict] = None
    subtotal: Decimal = field(default=ZERO, init=False)
    discount_amount: Decimal = field(default=ZERO, init=False)
    tax: Decimal = field(default=ZERO, init=False)
    total: Decimal = field(default=ZERO, init=False)

    def __post_init__(self):
        self.unit_price = round_money(self.unit_price)
        self.discount = to_decimal(self.discount)
        self.tax_rate = to_decimal(self.tax_rate)
        self.recalculate()

    def recalculate(self) -> None:
        """Recompute derived money fields from price, quantity and rates."""
        amounts = calculate_line_amounts(self.unit_price, self.quantity, self.discount, self.tax_rate)
        self.subtotal, self.discount_amount, self.tax, self.total = amounts

    def to_dict(self) -> dict:
        """Convert to dictionary (cache payload and API response)."""
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

    def to_row(self, position: int) -> dict:
        """Row payload for pos_save_cart."""
        row = self.to_dict()
        row["position"] = position
        return row

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        """Create from a cache payload or a cart_items row."""
        return cls(
            id=str(data["id"]),
            product_id=str(data["product_id"]),
            product_name=data.get("product_name") or "",
            product_sku=data.get("product_sku") or "",
            quantity=int(data["quantity"]),
            unit_price=to_decimal(str(data["unit_price"])),
            discount=to_decimal(str(data.get("discount") or "0")),
            tax_rate=to_decimal(str(data.get("tax_rate") or "0")),
            metadata=data.get("metadata"),
        )


@dataclass
class Cart:
    """Shopping cart being built at a register."""
    id: str
    store_id: str
    cashier_id: str
    customer_id: Optional[str] = None
    items: List[CartItem] = field(default_factory=list)
    status: str = CartStatus.ACTIVE.value
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO
    total_tax: Decimal = ZERO
    total: Decimal = ZERO
    metadata: Optional[dict] = None
    version: int = 0
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self):
        now = _now_iso()
        if not self.created_at:
            self.created_at = now
        if not self.updated_at:
            self.updated_at = now

    def find_item(self, item_id: str) -> Optional[CartItem]:
        return next((item for item in self.items if item.id == item_id), None)

    def find_product(self, product_id: str) -> Optional[CartItem]:
        return next((item for item in self.items if item.product_id == product_id), None)

    def recalculate_totals(self) -> None:
        """Rebuild all four rollups from the lines (never patched)."""
        self.subtotal = money_sum(item.subtotal for item in self.items)
        self.total_discount = money_sum(item.discount_amount for item in self.items)
        self.total_tax = money_sum(item.tax for item in self.items)
        self.total = money_sum(item.total for item in self.items)
        self.updated_at = _now_iso()

    def to_dict(self) -> dict:
        """Convert to dictionary for Redis storage and API responses."""
        return {
            "id": self.id,
            "store_id": self.store_id,
            "cashier_id": self.cashier_id,
            "customer_id": self.customer_id,
            "items": [item.to_dict() for item in self.items],
            "subtotal": format_money(self.subtotal),
            "total_discount": format_money(self.total_discount),
            "total_tax": format_money(self.total_tax),
            "total": format_money(self.total),
            "status": self.status,
            "metadata": self.metadata,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        """
        Create from a cache payload or a carts row with embedded cart_items.

        Rollups are rebuilt from the lines rather than trusted.
        """
        raw_items: List[dict[str, Any]] = data.get("items")
        if raw_items is None:
            raw_items = data.get("cart_items") or []
        raw_items = sorted(raw_items, key=lambda row: row.get("position", 0))

        cart = cls(
            id=str(data["id"]),
            store_id=data["store_id"],
            cashier_id=data["cashier_id"],
            customer_id=data.get("customer_id"),
            items=[CartItem.from_dict(item) for item in raw_items],
            status=data.get("status", CartStatus.ACTIVE.value),
            metadata=data.get("metadata"),
            version=int(data.get("version") or 0),
            created_at=str(data.get("created_at") or ""),
            updated_at=str(data.get("updated_at") or ""),
        )
        updated_at = cart.updated_at
        cart.recalculate_totals()
        cart.updated_at = updated_at
        return cart
