"""
Exception handlers

Every error leaves the service as one envelope:

{
    "error": {
        "status_code": 409,
        "error_code": "ROLE_IN_USE",
        "message": "Role is assigned to users and cannot be deleted",
        "type": "Conflict",
        "details": {"role_id": 7, "user_count": 3},
        "path": "/api/v1/admin/roles/7"
    }
}

Authentication and authorization failures never carry details.
"""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pgdash.exceptions import ErrorCode, PgDashError

logger = logging.getLogger(__name__)

_OPAQUE_CODES = {
    ErrorCode.AUTH_INVALID_CREDENTIALS,
    ErrorCode.AUTH_UNAUTHENTICATED,
    ErrorCode.AUTH_PERMISSION_DENIED,
}

_ERROR_TYPES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Validation Error",
    500: "Internal Server Error",
    503: "Service Unavailable",
    504: "Gateway Timeout",
}


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {
        "status_code": status_code,
        "message": message,
        "type": get_error_type(status_code),
    }
    if error_code:
        error["error_code"] = error_code.value if isinstance(error_code, ErrorCode) else error_code
    if details:
        error["details"] = details
    if path:
        error["path"] = path
    return JSONResponse(status_code=status_code, content={"error": error})


def get_error_type(status_code: int) -> str:
    return _ERROR_TYPES.get(status_code, "Error")


async def pgdash_exception_handler(request: Request, exc: PgDashError) -> JSONResponse:
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "%s: %s",
        type(exc).__name__,
        exc.message,
        extra={"status_code": exc.status_code, "error_code": exc.error_code.value, "path": request.url.path},
    )

    details = None if exc.error_code in _OPAQUE_CODES else (exc.details or None)
    return create_error_response(exc.status_code, exc.message, exc.error_code, details, request.url.path)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unmatched routes and methods raised by the router itself."""
    error_code = ErrorCode.RESOURCE_NOT_FOUND if exc.status_code == 404 else ErrorCode.UNKNOWN_ERROR
    return create_error_response(exc.status_code, str(exc.detail), error_code, path=request.url.path)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning("Validation error on %s", request.url.path, extra={"errors": errors})
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        ErrorCode.VALIDATION_FAILED,
        {"validation_errors": errors},
        request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception: %s",
        exc,
        exc_info=True,
        extra={"path": request.url.path, "method": request.method},
    )
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(PgDashError, pgdash_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
