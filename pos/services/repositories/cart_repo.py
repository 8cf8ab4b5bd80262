"""Cart Repository - persistent side of the cart aggregate.

The store is authoritative for carts; Redis only holds a projection.
"""
from datetime import datetime, timezone
from typing import Optional

from pos.cart.models import Cart, CartSaveOutcome, CartStatus, SaveStatus
from pos.services.money import format_money

from .base import BaseRepository, is_uuid


class CartRepository(BaseRepository):
    """Cart database operations."""

    async def create(self, cart: Cart) -> None:
        """Insert an empty cart row."""
        data = {
            "id": cart.id,
            "store_id": cart.store_id,
            "cashier_id": cart.cashier_id,
            "customer_id": cart.customer_id,
            "status": cart.status,
            "subtotal": format_money(cart.subtotal),
            "total_discount": format_money(cart.total_discount),
            "total_tax": format_money(cart.total_tax),
            "total": format_money(cart.total),
            "metadata": cart.metadata,
            "version": cart.version,
            "created_at": cart.created_at,
            "updated_at": cart.updated_at,
        }
        await self._execute(self.client.table("carts").insert(data), "carts.create")

    async def get_active(self, cart_id: str) -> Optional[Cart]:
        """Load an active cart with its lines in one query."""
        if not is_uuid(cart_id):
            return None
        result = await self._execute(
            self.client.table("carts")
            .select("*, cart_items(*)")
            .eq("id", cart_id)
            .eq("status", CartStatus.ACTIVE.value)
            .limit(1),
            "carts.get_active",
        )
        return Cart.from_dict(result.data[0]) if result.data else None

    async def save(self, cart: Cart) -> CartSaveOutcome:
        """
        Replace the cart's rollups and full line set atomically.

        Runs pos_save_cart, a single database transaction that checks the
        cart still has the version it was read at, updates the cart row,
        deletes every existing line and inserts the current ones.

        Returns:
            CartSaveOutcome; nothing was written unless its status is "saved"
        """
        result = await self._execute(
            self.client.rpc(
                "pos_save_cart",
                {
                    "p_cart_id": cart.id,
                    "p_expected_version": cart.version,
                    "p_subtotal": format_money(cart.subtotal),
                    "p_total_discount": format_money(cart.total_discount),
                    "p_total_tax": format_money(cart.total_tax),
                    "p_total": format_money(cart.total),
                    "p_updated_at": cart.updated_at,
                    "p_items": [item.to_row(position) for position, item in enumerate(cart.items)],
                },
            ),
            "carts.save",
        )
        data = result.data or {}
        version = data.get("version")
        return CartSaveOutcome(
            SaveStatus(data.get("status", SaveStatus.NOT_FOUND.value)),
            int(version) if version is not None else None,
        )

    async def set_status(self, cart_id: str, status: str) -> bool:
        """
        Move an active cart to another status (abandoned / completed).

        Carts that are already closed keep their status.

        Returns:
            True if an active cart was updated
        """
        if not is_uuid(cart_id):
            return False
        result = await self._execute(
            self.client.table("carts")
            .update({"status": status, "updated_at": datetime.now(timezone.utc).isoformat()})
            .eq("id", cart_id)
            .eq("status", CartStatus.ACTIVE.value),
            "carts.set_status",
        )
        return bool(result.data)
