"""
Structured Logging Middleware

One access line per request, tagged with a request id that is taken from
``X-Request-ID`` when the caller sends one and echoed back on the response.
The id is also injected into every log record emitted while the request is
being handled, so service-level lines (failed logins, cascade steps) can be
correlated with the request that caused them.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Record attributes copied into the JSON payload when present
EXTRA_FIELDS = (
    "user_id",
    "method",
    "path",
    "status_code",
    "error_code",
    "duration_ms",
    "client_ip",
)

QUIET_PATHS = {"/health"}


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }
        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, else X-Real-IP, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, logger_name: str = "pgdash.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                self._log(request, 500, started, error=type(exc).__name__)
                raise
            response.headers["X-Request-ID"] = request_id
            self._log(request, response.status_code, started)
            return response
        finally:
            request_id_var.reset(token)

    def _log(self, request: Request, status_code: int, started: float, error: str | None = None) -> None:
        if request.url.path in QUIET_PATHS:
            return

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        extra = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "client_ip": client_ip(request),
        }
        principal = getattr(request.state, "principal", None)
        if principal is not None:
            extra["user_id"] = principal.id

        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO

        message = f"{request.method} {request.url.path} - {status_code} ({duration_ms:.2f}ms)"
        if error:
            message += f" - {error}"
        self.logger.log(level, message, extra=extra)


def setup_structured_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        json_format: Emit JSON lines instead of plain text
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s")
        )
    handler.addFilter(RequestIdFilter())
    root_logger.addHandler(handler)

    # Keep uvicorn's own access log out of the way
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
