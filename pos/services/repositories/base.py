"""Base repository with shared Supabase client."""
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase._async.client import AsyncClient

from pos.errors import ERROR_STORE_UNAVAILABLE, InfrastructureError
from pos.logging import get_logger

logger = get_logger(__name__)


def is_uuid(value) -> bool:
    """Carts and transactions are keyed by uuid; anything else cannot match a row."""
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


class BaseRepository:
    """Base class for all repositories.

    Every query goes through `_execute`, which turns PostgREST and transport
    failures into InfrastructureError so callers see one failure type for an
    unavailable store.
    """

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    async def _execute(self, query, operation: str):
        try:
            return await query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"Store operation '{operation}' failed: {e}")
            raise InfrastructureError(ERROR_STORE_UNAVAILABLE, details={"operation": operation}) from e
