"""
CloudPOS Transactions - Main FastAPI Application

Single entry point for the cart and transaction API.
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from pos.errors import ERROR_INTERNAL, POSError
from pos.logging import get_logger
from pos.routers import carts_router, health_router, transactions_router
from pos.routers.responses import HTTP_ERROR_CODES, error_response, pos_error_response
from pos.services.database import init_database

logger = get_logger(__name__)


# ==================== FASTAPI APP ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    await init_database()
    logger.info("CloudPOS transaction service started")
    yield


app = FastAPI(
    title="CloudPOS Transactions",
    description="Point-of-sale cart and transaction API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(carts_router, prefix="/api")
app.include_router(transactions_router, prefix="/api")
app.include_router(health_router)


# ==================== ERROR HANDLERS ====================

@app.exception_handler(POSError)
async def pos_error_handler(request: Request, exc: POSError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return pos_error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return error_response(400, message, "VALIDATION_ERROR")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(exc.status_code, str(exc.detail), code)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, ERROR_INTERNAL, "INTERNAL_ERROR")
