"""
FastAPI Routers Package

All routers are included in api/index.py.
"""

from pos.routers.carts import router as carts_router
from pos.routers.health import router as health_router
from pos.routers.transactions import router as transactions_router

__all__ = [
    "carts_router",
    "health_router",
    "transactions_router",
]
