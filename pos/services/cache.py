"""
Cache/Lock Service - Upstash Redis wrapper.

Three concerns share one Redis:
- cart projection cache (advisory; every failure is logged, never raised)
- settlement locks (SET NX EX, token-checked release)
- transaction event channel (fire-and-forget publish)
"""
import json
import secrets
from typing import Any, Optional

from upstash_redis.asyncio import Redis as AsyncRedis

from pos.db import TTL, RedisKeys, get_redis
from pos.errors import ERROR_CACHE_UNAVAILABLE, InfrastructureError
from pos.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

# Delete the lock only if we still own it (a TTL-expired lock may belong to
# another holder by now)
RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class CacheService:
    """Redis-backed cache, lock and publish capability."""

    def __init__(self, redis: Optional[AsyncRedis] = None):
        self._redis = redis  # Lazy initialization

    @property
    def redis(self) -> AsyncRedis:
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            try:
                self._redis = get_redis()
            except ValueError as e:
                raise InfrastructureError(f"{ERROR_CACHE_UNAVAILABLE}: {e}") from e
        return self._redis

    # ==================== CART CACHE ====================

    async def get_cart(self, cart_id: str) -> Optional[dict]:
        """Cached cart payload, or None on miss, corruption or cache failure."""
        key = RedisKeys.cart_key(cart_id)
        try:
            data = await self.redis.get(key)
        except Exception as e:
            logger.warning(f"Cart cache read failed for {sanitize_id_for_logging(cart_id)}: {e}")
            return None

        if not data:
            return None

        try:
            return json.loads(data)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Corrupted cart cache for {sanitize_id_for_logging(cart_id)}: {e}")
            await self.delete_cart(cart_id)
            return None

    async def set_cart(self, cart_id: str, payload: dict, ttl: int = TTL.CART) -> bool:
        """Write the cart projection with a bounded TTL."""
        try:
            await self.redis.set(RedisKeys.cart_key(cart_id), json.dumps(payload), ex=ttl)
            return True
        except Exception as e:
            logger.error(f"Cart cache write failed for {sanitize_id_for_logging(cart_id)}: {e}")
            return False

    async def delete_cart(self, cart_id: str) -> bool:
        """Evict the cart projection."""
        try:
            await self.redis.delete(RedisKeys.cart_key(cart_id))
            return True
        except Exception as e:
            logger.error(f"Cart cache eviction failed for {sanitize_id_for_logging(cart_id)}: {e}")
            return False

    # ==================== LOCKS ====================

    async def try_acquire(self, resource: str, ttl: int = TTL.SETTLEMENT_LOCK) -> Optional[str]:
        """
        Single non-blocking attempt to take a named lock.

        Returns:
            Ownership token if acquired, None if another holder has it

        Raises:
            InfrastructureError: if Redis cannot be reached
        """
        token = secrets.token_hex(16)
        try:
            acquired = await self.redis.set(RedisKeys.lock_key(resource), token, ex=ttl, nx=True)
        except InfrastructureError:
            raise
        except Exception as e:
            logger.error(f"Failed to acquire lock {resource}: {e}")
            raise InfrastructureError(ERROR_CACHE_UNAVAILABLE) from e
        return token if acquired else None

    async def release(self, resource: str, token: str) -> bool:
        """
        Release a lock we own. Never raises; the lock TTL covers failures.
        """
        try:
            released = await self.redis.eval(
                RELEASE_LOCK_SCRIPT, keys=[RedisKeys.lock_key(resource)], args=[token]
            )
            return bool(released)
        except Exception as e:
            logger.error(f"Failed to release lock {resource} (expires by TTL): {e}")
            return False

    # ==================== EVENTS ====================

    async def publish(self, channel: str, message: Any) -> bool:
        """Publish an event. Failures are logged and swallowed."""
        try:
            serialized = message if isinstance(message, str) else json.dumps(message, default=str)
            await self.redis.publish(channel, serialized)
            return True
        except Exception as e:
            logger.warning(f"Publish to {channel} failed: {e}")
            return False

    async def is_healthy(self) -> bool:
        try:
            await self.redis.ping()
            return True
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False


_cache_service: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get CacheService singleton."""
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service
