"""
Database Module - Supabase and Redis Clients

Provides singleton instances of:
- Async Supabase client for PostgreSQL operations (tables + RPC functions)
- Async Upstash Redis client for the cart cache, settlement locks and
  transaction events
"""

import os
from typing import Optional

from supabase._async.client import AsyncClient
from supabase._async.client import create_client as acreate_client
from upstash_redis.asyncio import Redis as AsyncRedis

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")

# Upstash Redis - standard env var names per docs
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")


_async_supabase_client: Optional[AsyncClient] = None
_redis_client: Optional[AsyncRedis] = None


async def get_supabase() -> AsyncClient:
    """
    Get async Supabase client (singleton).
    """
    global _async_supabase_client

    if _async_supabase_client is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _async_supabase_client = await acreate_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _async_supabase_client


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Uses standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN

    Used for:
    - Active cart cache (read-through, TTL bounded)
    - Settlement locks (SET NX EX)
    - transaction_completed / transaction_voided events
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


class RedisKeys:
    """Redis key prefixes for different data types."""

    CART = "cart:"  # cart:{cart_id}
    LOCK = "lock:"  # lock:{resource}

    # Pub/sub channels
    TRANSACTION_COMPLETED = "transaction_completed"
    TRANSACTION_VOIDED = "transaction_voided"

    @staticmethod
    def cart_key(cart_id: str) -> str:
        return f"{RedisKeys.CART}{cart_id}"

    @staticmethod
    def lock_key(resource: str) -> str:
        return f"{RedisKeys.LOCK}{resource}"

    @staticmethod
    def payment_lock_resource(transaction_id: str) -> str:
        return f"transaction_payment:{transaction_id}"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    CART = int(os.environ.get("POS_CART_TTL", "3600"))  # 1 hour
    SETTLEMENT_LOCK = int(os.environ.get("POS_SETTLEMENT_LOCK_TTL", "30"))
