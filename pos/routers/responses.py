"""JSON envelope shared by every endpoint."""
from typing import Any, Optional

from fastapi.responses import JSONResponse

from pos.errors import POSError

# HTTPException statuses raised by FastAPI or the auth dependencies
HTTP_ERROR_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def success(data: Any = None, message: Optional[str] = None) -> dict:
    body: dict = {"success": True}
    if message:
        body["message"] = message
    body["data"] = data
    return body


def error_response(status_code: int, message: str, code: str, details: Optional[dict] = None) -> JSONResponse:
    content: dict = {"success": False, "message": message, "code": code}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def pos_error_response(exc: POSError) -> JSONResponse:
    return error_response(exc.status_code, exc.message, exc.code, exc.details)
