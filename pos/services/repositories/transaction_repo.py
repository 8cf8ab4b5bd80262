"""Transaction Repository - transactions, lines and inventory movements.

Every multi-row write is a PostgreSQL function called through RPC, so the
status flip, the stock counters and the movement log commit or roll back
together.
"""
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from pos.services.money import format_money
from pos.transactions.models import Transaction

from .base import BaseRepository, is_uuid

TRANSACTION_SELECT = "*, transaction_items(*)"


class TransactionRepository(BaseRepository):
    """Transaction database operations."""

    async def next_receipt_sequence(self, store_id: str, business_date: date) -> int:
        """Atomically increment and read the store/day receipt counter."""
        result = await self._execute(
            self.client.rpc(
                "pos_next_receipt_sequence",
                {"p_store_id": store_id, "p_business_date": business_date.isoformat()},
            ),
            "receipt_sequences.next",
        )
        return int(result.data)

    async def create(self, transaction: Transaction) -> Transaction:
        """Insert header and line snapshot in one database transaction."""
        header = {
            "id": transaction.id,
            "store_id": transaction.store_id,
            "cashier_id": transaction.cashier_id,
            "customer_id": transaction.customer_id,
            "type": transaction.type,
            "status": transaction.status,
            "cart_id": transaction.cart_id,
            "subtotal": format_money(transaction.subtotal),
            "total_discount": format_money(transaction.total_discount),
            "total_tax": format_money(transaction.total_tax),
            "total": format_money(transaction.total),
            "payment_method": transaction.payment_method,
            "payment_reference": transaction.payment_reference,
            "receipt_number": transaction.receipt_number,
            "notes": transaction.notes,
            "metadata": transaction.metadata,
            "created_at": transaction.created_at.isoformat() if transaction.created_at else None,
            "updated_at": transaction.updated_at.isoformat() if transaction.updated_at else None,
        }
        items = []
        for position, item in enumerate(transaction.items):
            row = item.to_dict()
            row["position"] = position
            items.append(row)

        result = await self._execute(
            self.client.rpc("pos_create_transaction", {"p_transaction": header, "p_items": items}),
            "transactions.create",
        )
        return Transaction.from_row(result.data)

    async def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """Get transaction with its lines. Always hits the store."""
        if not is_uuid(transaction_id):
            return None
        result = await self._execute(
            self.client.table("transactions").select(TRANSACTION_SELECT).eq("id", transaction_id).limit(1),
            "transactions.get_by_id",
        )
        return Transaction.from_row(result.data[0]) if result.data else None

    async def settle(
        self,
        transaction_id: str,
        payment_method: str,
        payment_reference: Optional[str],
        metadata: Optional[dict],
        adjustments: List[dict],
        completed_at: datetime,
    ) -> Optional[Transaction]:
        """
        Complete a pending transaction (pos_settle_transaction).

        In one database transaction: compare-and-swap status pending ->
        completed, apply stock adjustments, append inventory movements and
        mark the source cart completed.

        Returns:
            The completed transaction, or None if it was no longer pending
            (nothing was written)
        """
        result = await self._execute(
            self.client.rpc(
                "pos_settle_transaction",
                {
                    "p_transaction_id": transaction_id,
                    "p_payment_method": payment_method,
                    "p_payment_reference": payment_reference,
                    "p_metadata": metadata or {},
                    "p_adjustments": adjustments,
                    "p_completed_at": completed_at.isoformat(),
                },
            ),
            "transactions.settle",
        )
        return Transaction.from_row(result.data) if result.data else None

    async def void(
        self,
        transaction_id: str,
        reason: str,
        adjustments: List[dict],
        voided_at: datetime,
    ) -> Optional[Transaction]:
        """
        Void a completed transaction (pos_void_transaction).

        Compare-and-swap completed -> voided, append the reason to notes and
        apply the reversing adjustments in one database transaction.

        Returns:
            The voided transaction, or None if it was no longer completed
        """
        result = await self._execute(
            self.client.rpc(
                "pos_void_transaction",
                {
                    "p_transaction_id": transaction_id,
                    "p_reason": reason,
                    "p_adjustments": adjustments,
                    "p_voided_at": voided_at.isoformat(),
                },
            ),
            "transactions.void",
        )
        return Transaction.from_row(result.data) if result.data else None

    async def mark_failed(self, transaction_id: str, reason: str, notes: Optional[str] = None) -> bool:
        """
        Pending -> failed. Single-row CAS, no other side effects.

        The reason is appended to the existing notes the same way a void
        reason is.
        """
        failure = f"Failed: {reason}"
        result = await self._execute(
            self.client.table("transactions")
            .update({
                "status": "failed",
                "notes": f"{notes}\n\n{failure}" if notes else failure,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            })
            .eq("id", transaction_id)
            .eq("status", "pending"),
            "transactions.mark_failed",
        )
        return bool(result.data)

    async def get_history(
        self,
        store_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        cashier_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        transaction_type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Transaction], int]:
        """Get a newest-first page of a store's transactions plus the total count."""
        query = self.client.table("transactions").select(TRANSACTION_SELECT, count="exact").eq(
            "store_id", store_id
        )
        if start_date:
            query = query.gte("created_at", start_date.isoformat())
        if end_date:
            query = query.lte("created_at", end_date.isoformat())
        if cashier_id:
            query = query.eq("cashier_id", cashier_id)
        if customer_id:
            query = query.eq("customer_id", customer_id)
        if transaction_type:
            query = query.eq("type", transaction_type)
        if status:
            query = query.eq("status", status)

        query = query.order("created_at", desc=True).range(offset, offset + limit - 1)
        result = await self._execute(query, "transactions.get_history")

        transactions = [Transaction.from_row(row) for row in result.data or []]
        return transactions, result.count or 0
