"""Product Repository - read-only catalog lookups."""
from typing import Dict, Iterable, Optional

from pos.services.models import Product

from .base import BaseRepository

PRODUCT_COLUMNS = "id, name, sku, price, tax_rate, is_active, stock_quantity, updated_at"


class ProductRepository(BaseRepository):
    """Catalog provider. Stock counters are only written by settlement RPCs."""

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        """Get product by ID (active or not)."""
        result = await self._execute(
            self.client.table("products").select(PRODUCT_COLUMNS).eq("id", product_id).limit(1),
            "products.get_by_id",
        )
        return Product(**result.data[0]) if result.data else None

    async def get_many(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        """Get products keyed by id; missing ids are simply absent."""
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        result = await self._execute(
            self.client.table("products").select(PRODUCT_COLUMNS).in_("id", ids),
            "products.get_many",
        )
        return {str(row["id"]): Product(**row) for row in result.data or []}
