"""Pytest configuration and fixtures

In-memory stand-ins for the async Supabase client (table builder plus the
pos_* database functions) and the Upstash async Redis client. Every call
yields to the event loop once, so asyncio.gather interleaves concurrent
requests the way real network round trips do.
"""
import asyncio
import copy
import os
import re
import uuid
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from postgrest.exceptions import APIError

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test_key")
os.environ.setdefault("UPSTASH_REDIS_REST_URL", "https://test.upstash.io")
os.environ.setdefault("UPSTASH_REDIS_REST_TOKEN", "test_token")

from pos.cart import CartManager  # noqa: E402
from pos.services.cache import CacheService  # noqa: E402
from pos.services.database import Database  # noqa: E402
from pos.transactions import TransactionManager  # noqa: E402

_EMBED_RE = re.compile(r"(\w+)\(\*\)")

# Tables whose primary key is a uuid column
UUID_TABLES = {"carts", "transactions"}


class FakeResult:
    def __init__(self, data: Any = None, count: Optional[int] = None):
        self.data = data
        self.count = count


class FakeQuery:
    """Subset of the PostgREST query builder used by the repositories."""

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.count_mode: Optional[str] = None
        self.payload: Any = None
        self.filters: List[Callable[[dict], bool]] = []
        self.order_by: Optional[tuple] = None
        self.range_bounds: Optional[tuple] = None
        self.limit_n: Optional[int] = None
        self.uuid_filters: List[Any] = []

    def select(self, columns: str = "*", count: Optional[str] = None):
        self.op = "select"
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload: dict):
        self.op = "update"
        self.payload = payload
        return self

    def eq(self, column: str, value):
        if column == "id" and self.table in UUID_TABLES:
            self.uuid_filters.append(value)
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def gte(self, column: str, value):
        self.filters.append(lambda row: row.get(column) is not None and row[column] >= value)
        return self

    def lte(self, column: str, value):
        self.filters.append(lambda row: row.get(column) is not None and row[column] <= value)
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def range(self, start: int, end: int):
        self.range_bounds = (start, end)
        return self

    def limit(self, n: int):
        self.limit_n = n
        return self

    def _matches(self) -> List[dict]:
        return [row for row in self.client.tables[self.table] if all(f(row) for f in self.filters)]

    async def execute(self) -> FakeResult:
        await self.client.round_trip()
        for value in self.uuid_filters:
            try:
                uuid.UUID(str(value))
            except ValueError:
                raise APIError({
                    "code": "22P02",
                    "message": f'invalid input syntax for type uuid: "{value}"',
                }) from None
        rows = self.client.tables[self.table]

        if self.op == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = [copy.deepcopy(row) for row in new_rows]
            rows.extend(inserted)
            return FakeResult(copy.deepcopy(inserted))

        if self.op == "update":
            updated = []
            for row in self._matches():
                row.update(copy.deepcopy(self.payload))
                updated.append(copy.deepcopy(row))
            return FakeResult(updated)

        matched = self._matches()
        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda row: row.get(column) or "", reverse=desc)
        total = len(matched)
        if self.range_bounds:
            start, end = self.range_bounds
            matched = matched[start:end + 1]
        if self.limit_n is not None:
            matched = matched[:self.limit_n]

        embeds = _EMBED_RE.findall(self.columns)
        data = []
        for row in matched:
            out = copy.deepcopy(row)
            for child in embeds:
                out[child] = self.client.children(child, self.table, row["id"])
            data.append(out)
        return FakeResult(data, total if self.count_mode == "exact" else None)


class FakeRpc:
    def __init__(self, client: "FakeSupabase", name: str, params: dict):
        self.client = client
        self.name = name
        self.params = params

    async def execute(self) -> FakeResult:
        await self.client.round_trip()
        # No await below: each function body is atomic, like a DB transaction
        handler = getattr(self.client, f"_rpc_{self.name}")
        return FakeResult(handler(**copy.deepcopy(self.params)))


class FakeSupabase:
    """In-memory Supabase client implementing the pos_* functions."""

    def __init__(self):
        self.tables: Dict[str, List[dict]] = {
            "products": [],
            "carts": [],
            "cart_items": [],
            "transactions": [],
            "transaction_items": [],
            "inventory_movements": [],
            "receipt_sequences": [],
        }
        self.broken = False
        self.rpc_calls: List[str] = []

    async def round_trip(self) -> None:
        await asyncio.sleep(0)
        if self.broken:
            raise httpx.ConnectError("connection refused")

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict) -> FakeRpc:
        self.rpc_calls.append(name)
        return FakeRpc(self, name, params)

    # ---- helpers ----

    def children(self, child: str, parent_table: str, parent_id: str) -> List[dict]:
        fk = f"{parent_table[:-1]}_id"
        return [copy.deepcopy(row) for row in self.tables[child] if row.get(fk) == parent_id]

    def find(self, table: str, **match) -> Optional[dict]:
        for row in self.tables[table]:
            if all(row.get(k) == v for k, v in match.items()):
                return row
        return None

    def product(self, product_id: str) -> dict:
        return self.find("products", id=product_id)

    def _transaction_json(self, transaction_id: str) -> dict:
        row = copy.deepcopy(self.find("transactions", id=transaction_id))
        items = self.children("transaction_items", "transactions", transaction_id)
        row["transaction_items"] = sorted(items, key=lambda item: item.get("position", 0))
        return row

    def _apply_adjustments(self, transaction_id: str, adjustments: List[dict]) -> None:
        for adjustment in adjustments or []:
            product = self.product(adjustment["product_id"])
            if product is not None:
                product["stock_quantity"] += adjustment["quantity_delta"]
            self.tables["inventory_movements"].append({
                "id": f"mv-{len(self.tables['inventory_movements']) + 1}",
                "product_id": adjustment["product_id"],
                "quantity": adjustment["quantity_delta"],
                "movement_type": adjustment["movement_type"],
                "reference_type": "transaction_item",
                "reference_id": adjustment["transaction_item_id"],
                "transaction_id": transaction_id,
            })

    # ---- database functions ----

    def _rpc_pos_save_cart(self, p_cart_id, p_expected_version, p_subtotal, p_total_discount,
                           p_total_tax, p_total, p_updated_at, p_items):
        cart = self.find("carts", id=p_cart_id, status="active")
        if cart is None:
            return {"status": "not_found"}
        if cart.get("version", 0) != p_expected_version:
            return {"status": "conflict"}
        cart.update({
            "subtotal": p_subtotal,
            "total_discount": p_total_discount,
            "total_tax": p_total_tax,
            "total": p_total,
            "updated_at": p_updated_at,
            "version": cart.get("version", 0) + 1,
        })
        self.tables["cart_items"] = [
            row for row in self.tables["cart_items"] if row["cart_id"] != p_cart_id
        ]
        for item in p_items:
            self.tables["cart_items"].append({**item, "cart_id": p_cart_id})
        return {"status": "saved", "version": cart["version"]}

    def _rpc_pos_next_receipt_sequence(self, p_store_id, p_business_date):
        row = self.find("receipt_sequences", store_id=p_store_id, business_date=p_business_date)
        if row is None:
            row = {"store_id": p_store_id, "business_date": p_business_date, "last_value": 0}
            self.tables["receipt_sequences"].append(row)
        row["last_value"] += 1
        return row["last_value"]

    def _rpc_pos_create_transaction(self, p_transaction, p_items):
        if self.find("transactions", receipt_number=p_transaction["receipt_number"]):
            raise AssertionError("duplicate receipt_number")
        self.tables["transactions"].append({
            **p_transaction,
            "completed_at": None,
            "voided_at": None,
        })
        for item in p_items:
            self.tables["transaction_items"].append({**item, "transaction_id": p_transaction["id"]})
        return self._transaction_json(p_transaction["id"])

    def _rpc_pos_settle_transaction(self, p_transaction_id, p_payment_method, p_payment_reference,
                                    p_metadata, p_adjustments, p_completed_at):
        row = self.find("transactions", id=p_transaction_id, status="pending")
        if row is None:
            return None
        row.update({
            "status": "completed",
            "payment_method": p_payment_method,
            "payment_reference": p_payment_reference or row.get("payment_reference"),
            "metadata": {**(row.get("metadata") or {}), **(p_metadata or {})},
            "completed_at": p_completed_at,
            "updated_at": p_completed_at,
        })
        self._apply_adjustments(p_transaction_id, p_adjustments)
        if row.get("cart_id"):
            cart = self.find("carts", id=row["cart_id"])
            if cart is not None:
                cart["status"] = "completed"
        return self._transaction_json(p_transaction_id)

    def _rpc_pos_void_transaction(self, p_transaction_id, p_reason, p_adjustments, p_voided_at):
        row = self.find("transactions", id=p_transaction_id, status="completed")
        if row is None:
            return None
        notes = row.get("notes")
        row.update({
            "status": "voided",
            "notes": f"{notes}\n\nVoided: {p_reason}" if notes else f"Voided: {p_reason}",
            "voided_at": p_voided_at,
            "updated_at": p_voided_at,
        })
        self._apply_adjustments(p_transaction_id, p_adjustments)
        return self._transaction_json(p_transaction_id)


class FakeRedis:
    """Subset of upstash_redis.asyncio.Redis."""

    def __init__(self):
        self.store: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.published: List[tuple] = []
        self.broken = False

    async def _round_trip(self) -> None:
        await asyncio.sleep(0)
        if self.broken:
            raise ConnectionError("redis unavailable")

    async def get(self, key: str):
        await self._round_trip()
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None, nx: bool = False):
        await self._round_trip()
        if nx and key in self.store:
            return None
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        await self._round_trip()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def eval(self, script: str, keys: Optional[list] = None, args: Optional[list] = None):
        await self._round_trip()
        # Only the compare-and-delete release script is used
        key, token = keys[0], args[0]
        if self.store.get(key) == token:
            del self.store[key]
            self.ttls.pop(key, None)
            return 1
        return 0

    async def publish(self, channel: str, message: str) -> int:
        await self._round_trip()
        self.published.append((channel, message))
        return 1

    async def ping(self) -> str:
        await self._round_trip()
        return "PONG"


PRODUCTS = [
    {"id": "P1", "name": "Espresso Beans 1kg", "sku": "ESP-1KG", "price": "10.00",
     "tax_rate": "0.10", "is_active": True, "stock_quantity": 100},
    {"id": "P2", "name": "Oat Milk", "sku": "OAT-1L", "price": "3.35",
     "tax_rate": "0.08", "is_active": True, "stock_quantity": 40},
    {"id": "P3", "name": "Discontinued Mug", "sku": "MUG-OLD", "price": "7.00",
     "tax_rate": "0.10", "is_active": False, "stock_quantity": 3},
]


@pytest.fixture
def fake_supabase():
    """In-memory Supabase with a small catalog"""
    client = FakeSupabase()
    client.tables["products"] = copy.deepcopy(PRODUCTS)
    return client


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def database(fake_supabase):
    return Database(fake_supabase)


@pytest.fixture
def cache(fake_redis):
    return CacheService(fake_redis)


@pytest.fixture
def cart_manager(database, cache):
    return CartManager(db=database, cache=cache)


@pytest.fixture
def transaction_manager(database, cache, cart_manager):
    return TransactionManager(db=database, cache=cache, carts=cart_manager)


@pytest.fixture
def redis_factory():
    """Fresh, independent FakeRedis instances"""
    return FakeRedis
