"""
Transaction Manager

Owns the transaction state machine:

    pending -> completed -> voided
            -> failed

Settlement is the only path that captures payment. It runs under a
per-transaction Redis lock, and the status flip, stock adjustment and cart
closure are committed by one database function, so a crash can never leave
a completed transaction without its inventory movement or vice versa.
"""
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from pos.cart.service import CartManager
from pos.db import TTL, RedisKeys
from pos.errors import (
    ERROR_AMOUNT_MISMATCH,
    ERROR_CART_EMPTY,
    ERROR_PRODUCT_NOT_FOUND,
    ERROR_TRANSACTION_NOT_COMPLETED,
    ERROR_TRANSACTION_NOT_PENDING,
    ERROR_VOID_REASON_REQUIRED,
    AmountMismatchError,
    ConflictError,
    InvalidStateError,
    TransactionNotFoundError,
    ValidationError,
)
from pos.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging
from pos.services.money import ZERO, amounts_equal, format_money, to_decimal
from pos.transactions.constants import (
    DEFAULT_HISTORY_LIMIT,
    MAX_HISTORY_LIMIT,
    TransactionStatus,
    TransactionType,
    can_transition,
)
from pos.transactions.inventory import plan_adjustments
from pos.transactions.models import Transaction, TransactionItem, TransactionPage
from pos.transactions.receipts import business_date, format_receipt_number

if TYPE_CHECKING:
    from pos.services.cache import CacheService
    from pos.services.database import Database

logger = get_logger(__name__)

_TRANSACTION_TYPES = {t.value for t in TransactionType}
_TRANSACTION_STATUSES = {s.value for s in TransactionStatus}


def _require(value: Optional[str], field: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


class TransactionManager:
    """Creates, settles, voids and lists register transactions."""

    def __init__(
        self,
        db: Optional["Database"] = None,
        cache: Optional["CacheService"] = None,
        carts: Optional[CartManager] = None,
    ):
        self._db = db
        self._cache = cache
        self._carts = carts

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

    @property
    def carts(self) -> CartManager:
        if self._carts is None:
            self._carts = CartManager(db=self.db, cache=self.cache)
        return self._carts

    # ==================== CREATE ====================

    async def create_transaction(
        self,
        store_id: str,
        cashier_id: str,
        type: str,
        payment_method: str,
        customer_id: Optional[str] = None,
        cart_id: Optional[str] = None,
        payment_reference: Optional[str] = None,
        notes: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Transaction:
        """
        Create a pending transaction.

        With a cart, the cart's lines and rollups are copied verbatim; the
        snapshot is never recomputed afterwards.

        Raises:
            ValidationError: missing fields, unknown type or empty cart
            CartNotFoundError: cart_id given but no such active cart
        """
        store_id = _require(store_id, "store_id")
        cashier_id = _require(cashier_id, "cashier_id")
        payment_method = _require(payment_method, "payment_method")
        transaction_type = str(type.value if isinstance(type, TransactionType) else type or "")
        if transaction_type not in _TRANSACTION_TYPES:
            raise ValidationError(f"Invalid transaction type: {transaction_type or 'missing'}")

        items: list[TransactionItem] = []
        subtotal = total_discount = total_tax = total = ZERO

        if cart_id:
            cart = await self.carts.get(cart_id)
            if not cart.items:
                raise ValidationError(ERROR_CART_EMPTY)

            items = [
                TransactionItem(
                    id=str(uuid4()),
                    product_id=line.product_id,
                    product_name=line.product_name,
                    product_sku=line.product_sku,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    discount=line.discount,
                    tax_rate=line.tax_rate,
                    subtotal=line.subtotal,
                    discount_amount=line.discount_amount,
                    tax=line.tax,
                    total=line.total,
                    position=position,
                    metadata=line.metadata,
                )
                for position, line in enumerate(cart.items)
            ]
            subtotal, total_discount, total_tax, total = (
                cart.subtotal, cart.total_discount, cart.total_tax, cart.total,
            )

        now = datetime.now(timezone.utc)
        day = business_date(now)
        sequence = await self.db.transactions.next_receipt_sequence(store_id, day)

        transaction = Transaction(
            id=str(uuid4()),
            store_id=store_id,
            cashier_id=cashier_id,
            customer_id=customer_id or None,
            type=transaction_type,
            status=TransactionStatus.PENDING.value,
            cart_id=cart_id or None,
            items=items,
            subtotal=subtotal,
            total_discount=total_discount,
            total_tax=total_tax,
            total=total,
            payment_method=payment_method,
            payment_reference=payment_reference,
            receipt_number=format_receipt_number(store_id, day, sequence),
            notes=notes,
            metadata=metadata,
            created_at=now,
            updated_at=now,
        )

        created = await self.db.transactions.create(transaction)
        logger.info(
            f"Transaction created: {sanitize_id_for_logging(created.id)} "
            f"receipt={created.receipt_number} type={created.type} total={format_money(created.total)}"
        )
        return created

    # ==================== SETTLE ====================

    async def process_payment(
        self,
        transaction_id: str,
        payment_method: str,
        amount,
        payment_reference: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Transaction:
        """
        Settle a pending transaction exactly once.

        Raises:
            ConflictError: another request holds the settlement lock
            TransactionNotFoundError: unknown id
            InvalidStateError: not pending (already settled, failed or voided)
            AmountMismatchError: amount differs from the total (stays pending)
            ValidationError: a line's product left the catalog (now failed)
        """
        payment_method = _require(payment_method, "payment_method")
        paid = to_decimal(amount, "amount")

        resource = RedisKeys.payment_lock_resource(transaction_id)
        token = await self.cache.try_acquire(resource, TTL.SETTLEMENT_LOCK)
        if token is None:
            logger.warning(f"[process_payment] Lock busy for {sanitize_id_for_logging(transaction_id)}")
            raise ConflictError()

        try:
            transaction = await self.db.transactions.get_by_id(transaction_id)
            if transaction is None:
                raise TransactionNotFoundError()

            if not can_transition(transaction.status, TransactionStatus.COMPLETED.value):
                raise InvalidStateError(
                    ERROR_TRANSACTION_NOT_PENDING, details={"status": transaction.status}
                )

            if not amounts_equal(paid, transaction.total):
                logger.warning(
                    f"[process_payment] Amount mismatch for {sanitize_id_for_logging(transaction_id)}: "
                    f"expected={format_money(transaction.total)} received={paid}"
                )
                raise AmountMismatchError(
                    ERROR_AMOUNT_MISMATCH,
                    details={"expected": format_money(transaction.total), "received": str(paid)},
                )

            await self._validate_catalog(transaction)

            adjustments = plan_adjustments(transaction.items, transaction.type)
            settled = await self.db.transactions.settle(
                transaction_id,
                payment_method=payment_method,
                payment_reference=payment_reference,
                metadata=metadata,
                adjustments=adjustments,
                completed_at=datetime.now(timezone.utc),
            )
            if settled is None:
                # Status moved under us; the database function wrote nothing
                raise InvalidStateError(ERROR_TRANSACTION_NOT_PENDING)

            logger.info(
                f"Transaction completed: {sanitize_id_for_logging(transaction_id)} "
                f"receipt={settled.receipt_number} adjustments={len(adjustments)}"
            )

            if settled.cart_id:
                await self.carts.evict(settled.cart_id)
            await self.cache.publish(RedisKeys.TRANSACTION_COMPLETED, settled.to_dict())
            return settled
        finally:
            await self.cache.release(resource, token)

    async def _validate_catalog(self, transaction: Transaction) -> None:
        product_ids = list({item.product_id for item in transaction.items})
        if not product_ids:
            return

        products = await self.db.products.get_many(product_ids)
        missing = [pid for pid in product_ids if pid not in products]
        if not missing:
            return

        reason = f"{ERROR_PRODUCT_NOT_FOUND}: {', '.join(sorted(missing))}"
        await self.db.transactions.mark_failed(transaction.id, reason, notes=transaction.notes)
        logger.error(f"[process_payment] Transaction {sanitize_id_for_logging(transaction.id)} failed: {reason}")
        raise ValidationError(reason, details={"missing_products": sorted(missing)})

    # ==================== VOID ====================

    async def void_transaction(self, transaction_id: str, reason: str) -> Transaction:
        """
        Void a completed transaction and put its stock back.

        Raises:
            ValidationError: empty reason
            TransactionNotFoundError: unknown id
            InvalidStateError: not completed
        """
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError(ERROR_VOID_REASON_REQUIRED)

        transaction = await self.db.transactions.get_by_id(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError()
        if not can_transition(transaction.status, TransactionStatus.VOIDED.value):
            raise InvalidStateError(
                ERROR_TRANSACTION_NOT_COMPLETED, details={"status": transaction.status}
            )

        adjustments = plan_adjustments(transaction.items, transaction.type, reverse=True)
        voided = await self.db.transactions.void(
            transaction_id,
            reason=reason,
            adjustments=adjustments,
            voided_at=datetime.now(timezone.utc),
        )
        if voided is None:
            raise InvalidStateError(ERROR_TRANSACTION_NOT_COMPLETED)

        logger.info(
            f"Transaction voided: {sanitize_id_for_logging(transaction_id)} "
            f"reason={sanitize_string_for_logging(reason)}"
        )
        await self.cache.publish(RedisKeys.TRANSACTION_VOIDED, voided.to_dict())
        return voided

    # ==================== READ ====================

    async def get_transaction(self, transaction_id: str) -> Transaction:
        transaction = await self.db.transactions.get_by_id(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError()
        return transaction

    async def get_transaction_history(
        self,
        store_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        cashier_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
        offset: int = 0,
    ) -> TransactionPage:
        """Newest-first page of a store's transactions."""
        store_id = _require(store_id, "store_id")
        if limit <= 0 or limit > MAX_HISTORY_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_HISTORY_LIMIT}")
        if offset < 0:
            raise ValidationError("offset must not be negative")
        if type and type not in _TRANSACTION_TYPES:
            raise ValidationError(f"Invalid transaction type: {type}")
        if status and status not in _TRANSACTION_STATUSES:
            raise ValidationError(f"Invalid transaction status: {status}")
        if start_date and end_date and start_date > end_date:
            raise ValidationError("start_date must not be after end_date")

        transactions, total = await self.db.transactions.get_history(
            store_id,
            start_date=start_date,
            end_date=end_date,
            cashier_id=cashier_id,
            customer_id=customer_id,
            transaction_type=type,
            status=status,
            limit=limit,
            offset=offset,
        )
        return TransactionPage(transactions=transactions, total=total, limit=limit, offset=offset)


_transaction_manager: Optional[TransactionManager] = None


def get_transaction_manager() -> TransactionManager:
    """Get TransactionManager singleton."""
    global _transaction_manager
    if _transaction_manager is None:
        _transaction_manager = TransactionManager()
    return _transaction_manager
