"""
Supabase Database Service

Single entry point to the persistent store. Groups the repositories behind
one object so managers receive a single dependency.

Usage:
    from pos.services.database import get_database

    # At FastAPI startup (lifespan):
    await init_database()

    db = get_database()
    product = await db.products.get_by_id("p-1")
"""

import asyncio
from typing import Optional

from supabase._async.client import AsyncClient

from pos.db import get_supabase
from pos.errors import InfrastructureError
from pos.logging import get_logger
from pos.services.repositories import CartRepository, ProductRepository, TransactionRepository

logger = get_logger(__name__)


class Database:
    """
    Supabase database client with all repositories.

    Must be initialized via async factory method `create()` or
    `init_database()`; tests construct it directly around a fake client.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

        self.products = ProductRepository(self.client)
        self.carts = CartRepository(self.client)
        self.transactions = TransactionRepository(self.client)

    @classmethod
    async def create(cls) -> "Database":
        """Async factory method: build the Supabase client from environment."""
        client = await get_supabase()
        return cls(client)

    async def is_healthy(self) -> bool:
        """Reachability check used by /health."""
        try:
            await self.client.table("products").select("id").limit(1).execute()
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False


_db: Optional[Database] = None
_db_lock: Optional[asyncio.Lock] = None


def _get_lock() -> asyncio.Lock:
    """Get or create async lock for one-time initialization."""
    global _db_lock
    if _db_lock is None:
        _db_lock = asyncio.Lock()
    return _db_lock


async def init_database() -> Database:
    """Initialize async database singleton.

    Called at FastAPI startup (lifespan) or lazily on first use.

    Returns:
        Database instance (also cached as singleton)
    """
    global _db
    if _db is not None:
        return _db

    async with _get_lock():
        if _db is None:
            logger.info("Initializing async Supabase client...")
            try:
                _db = await Database.create()
            except ValueError as e:
                raise InfrastructureError(str(e)) from e
            logger.info("Async Supabase client initialized successfully")
    return _db


def get_database() -> Database:
    """Get database instance (sync accessor).

    Raises:
        RuntimeError: If init_database() has not run
    """
    if _db is None:
        raise RuntimeError(
            "Database not initialized. Call 'await init_database()' at startup."
        )
    return _db


def is_database_initialized() -> bool:
    """Check if database singleton is initialized."""
    return _db is not None
