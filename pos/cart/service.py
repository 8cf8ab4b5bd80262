"""Cart manager: store-backed carts with a Redis read-through cache."""
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from pos.errors import (
    ERROR_CART_MODIFIED,
    ERROR_QUANTITY_NOT_POSITIVE,
    CartNotFoundError,
    ConflictError,
    ItemNotFoundError,
    POSError,
    ProductInactiveError,
    ProductNotFoundError,
    ValidationError,
)
from pos.logging import get_logger, sanitize_id_for_logging
from pos.services.money import round_money, to_decimal, to_rate

from .models import Cart, CartItem, CartStatus, SaveStatus

if TYPE_CHECKING:
    from pos.services.cache import CacheService
    from pos.services.database import Database

logger = get_logger(__name__)


def _require(value: Optional[str], field: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("Quantity must be an integer")
    if quantity <= 0:
        raise ValidationError(ERROR_QUANTITY_NOT_POSITIVE)
    return quantity


def _validate_price(unit_price) -> Optional[object]:
    if unit_price is None:
        return None
    price = round_money(to_decimal(unit_price, "unit_price"))
    if price < 0:
        raise ValidationError("unit_price must not be negative")
    return price


class CartManager:
    """
    Manages register carts.

    The store is the source of truth; Redis holds a rebuildable projection
    for an hour. Every mutation recomputes the touched line, rebuilds the
    cart rollups, replaces the persisted line set atomically and only then
    refreshes the cache.
    """

    def __init__(self, db: Optional["Database"] = None, cache: Optional["CacheService"] = None):
        self._db = db
        self._cache = cache

    @property
    def db(self) -> "Database":
        if self._db is None:
            from pos.services.database import get_database
            self._db = get_database()
        return self._db

    @property
    def cache(self) -> "CacheService":
        if self._cache is None:
            from pos.services.cache import get_cache_service
            self._cache = get_cache_service()
        return self._cache

    async def create(
        self,
        store_id: str,
        cashier_id: str,
        customer_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Cart:
        """Open a new empty cart."""
        cart = Cart(
            id=str(uuid4()),
            store_id=_require(store_id, "store_id"),
            cashier_id=_require(cashier_id, "cashier_id"),
            customer_id=customer_id or None,
            metadata=metadata,
        )

        await self.db.carts.create(cart)
        await self.cache.set_cart(cart.id, cart.to_dict())

        logger.info(
            f"Cart created: {sanitize_id_for_logging(cart.id)} "
            f"store={sanitize_id_for_logging(store_id)} cashier={sanitize_id_for_logging(cashier_id)}"
        )
        return cart

    async def get(self, cart_id: str) -> Cart:
        """
        Get an active cart: cache first, then the store.

        Raises:
            CartNotFoundError: if no active cart has this id
        """
        cached = await self.cache.get_cart(cart_id)
        if cached:
            try:
                return Cart.from_dict(cached)
            except (KeyError, TypeError, ValueError, POSError) as e:
                logger.warning(f"Discarding unreadable cached cart {sanitize_id_for_logging(cart_id)}: {e}")
                await self.cache.delete_cart(cart_id)

        cart = await self.db.carts.get_active(cart_id)
        if cart is None:
            raise CartNotFoundError()

        await self.cache.set_cart(cart.id, cart.to_dict())
        return cart

    async def add_item(
        self,
        cart_id: str,
        product_id: str,
        quantity: int,
        unit_price=None,
        discount=None,
        metadata: Optional[dict] = None,
    ) -> Cart:
        """
        Add a product to the cart, merging with an existing line.

        A repeated product sums quantities and reprices the line at the
        override price (or the current catalog price) instead of adding a
        second line.
        """
        product_id = _require(product_id, "product_id")
        quantity = _validate_quantity(quantity)
        price_override = _validate_price(unit_price)
        new_discount = to_rate(discount, "discount") if discount is not None else None

        cart = await self.get(cart_id)

        product = await self.db.products.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError()
        if not product.is_active:
            raise ProductInactiveError()

        price = price_override if price_override is not None else product.price

        existing = cart.find_product(product_id)
        if existing:
            existing.quantity += quantity
            existing.unit_price = round_money(price)
            if new_discount is not None:
                existing.discount = new_discount
            if metadata:
                existing.metadata = {**(existing.metadata or {}), **metadata}
            existing.recalculate()
        else:
            cart.items.append(
                CartItem(
                    id=str(uuid4()),
                    product_id=product.id,
                    product_name=product.name,
                    product_sku=product.sku,
                    quantity=quantity,
                    unit_price=price,
                    discount=new_discount if new_discount is not None else to_decimal("0"),
                    tax_rate=product.tax_rate,
                    metadata=metadata,
                )
            )

        await self._commit(cart)
        logger.info(
            f"Item added to cart {sanitize_id_for_logging(cart_id)}: "
            f"product={sanitize_id_for_logging(product_id)} qty={quantity}"
        )
        return cart

    async def update_item(
        self,
        cart_id: str,
        item_id: str,
        quantity: Optional[int] = None,
        discount=None,
        metadata: Optional[dict] = None,
    ) -> Cart:
        """
        Change a line's quantity, discount or metadata.

        A quantity of zero or less removes the line.
        """
        if quantity is not None and (isinstance(quantity, bool) or not isinstance(quantity, int)):
            raise ValidationError("Quantity must be an integer")
        new_discount = to_rate(discount, "discount") if discount is not None else None

        cart = await self.get(cart_id)
        item = cart.find_item(item_id)
        if item is None:
            raise ItemNotFoundError()

        if quantity is not None and quantity <= 0:
            cart.items.remove(item)
        else:
            if quantity is not None:
                item.quantity = quantity
            if new_discount is not None:
                item.discount = new_discount
            if metadata:
                item.metadata = {**(item.metadata or {}), **metadata}
            item.recalculate()

        await self._commit(cart)
        logger.info(f"Cart item updated: cart={sanitize_id_for_logging(cart_id)} item={sanitize_id_for_logging(item_id)}")
        return cart

    async def remove_item(self, cart_id: str, item_id: str) -> Cart:
        """Remove a line from the cart."""
        cart = await self.get(cart_id)
        item = cart.find_item(item_id)
        if item is None:
            raise ItemNotFoundError()

        cart.items.remove(item)
        await self._commit(cart)
        logger.info(f"Item removed from cart {sanitize_id_for_logging(cart_id)}")
        return cart

    async def clear(self, cart_id: str) -> Cart:
        """Drop every line; rollups return to zero."""
        cart = await self.get(cart_id)
        cart.items = []
        await self._commit(cart)
        logger.info(f"Cart cleared: {sanitize_id_for_logging(cart_id)}")
        return cart

    async def delete(self, cart_id: str) -> None:
        """
        Mark the cart abandoned and evict it. Idempotent.

        A cart already closed by its settlement stays completed.
        """
        abandoned = await self.db.carts.set_status(cart_id, CartStatus.ABANDONED.value)
        await self.cache.delete_cart(cart_id)
        if abandoned:
            logger.info(f"Cart deleted: {sanitize_id_for_logging(cart_id)}")

    async def evict(self, cart_id: str) -> None:
        """Drop the cached projection (the store row is untouched)."""
        await self.cache.delete_cart(cart_id)

    async def _commit(self, cart: Cart) -> None:
        cart.recalculate_totals()

        outcome = await self.db.carts.save(cart)
        if outcome.status != SaveStatus.SAVED:
            # Stale projection either way; the next read goes to the store
            await self.cache.delete_cart(cart.id)
            if outcome.status == SaveStatus.CONFLICT:
                logger.warning(f"Concurrent cart write rejected: {sanitize_id_for_logging(cart.id)}")
                raise ConflictError(ERROR_CART_MODIFIED)
            # Closed by a concurrent settlement or delete
            raise CartNotFoundError()

        cart.version = outcome.version
        await self.cache.set_cart(cart.id, cart.to_dict())


_cart_manager: Optional[CartManager] = None


def get_cart_manager() -> CartManager:
    """Get CartManager singleton."""
    global _cart_manager
    if _cart_manager is None:
        _cart_manager = CartManager()
    return _cart_manager
