"""Health check: store and cache reachability."""
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from pos.logging import get_logger
from pos.services.cache import get_cache_service
from pos.services.database import get_database, is_database_initialized

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    database_ok = is_database_initialized() and await get_database().is_healthy()
    cache_ok = await get_cache_service().is_healthy()

    healthy = database_ok and cache_ok
    if not healthy:
        logger.warning(f"Health check degraded: database={database_ok} cache={cache_ok}")

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "success": healthy,
            "data": {
                "status": "ok" if healthy else "degraded",
                "service": "cloudpos-transactions",
                "database": database_ok,
                "cache": cache_ok,
            },
        },
    )
