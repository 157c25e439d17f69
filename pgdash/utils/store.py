"""
Store call guards.

Every round trip to the relational store goes through ``guard`` so it is
bounded by ``settings.store_timeout_seconds`` and connectivity failures
surface as StoreUnavailableError / StoreTimeoutError instead of raw
driver exceptions. ``retry_store_call`` re-runs a whole unit of work once
for those two kinds only.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.config import settings
from pgdash.exceptions import StoreTimeoutError, StoreUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONNECTIVITY_ERRORS = (OperationalError, InterfaceError, DisconnectionError, ConnectionError)


async def guard(awaitable: Awaitable[T], operation: str, timeout: float | None = None) -> T:
    """Await a store call under the configured time bound."""
    timeout = settings.store_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.error("Store call timed out: %s (%.1fs)", operation, timeout)
        raise StoreTimeoutError(operation) from exc
    except _CONNECTIVITY_ERRORS as exc:
        logger.error("Store unavailable during %s: %s", operation, exc)
        raise StoreUnavailableError(operation) from exc


async def execute(db: AsyncSession, statement: Any, operation: str, params: dict | None = None):
    return await guard(db.execute(statement, params), operation)


async def scalar(db: AsyncSession, statement: Any, operation: str):
    return await guard(db.scalar(statement), operation)


async def flush(db: AsyncSession, operation: str) -> None:
    await guard(db.flush(), operation)


async def commit(db: AsyncSession, operation: str) -> None:
    await guard(db.commit(), operation)


@asynccontextmanager
async def transaction(db: AsyncSession, operation: str):
    """
    Unit of work: commit when the block exits cleanly, roll back otherwise.

    The session autobegins on its first statement, so everything executed
    inside the block shares one store transaction.
    """
    try:
        yield db
        await commit(db, operation)
    except Exception:
        await db.rollback()
        raise


def _is_retryable(exc: Exception) -> bool:
    return isinstance(exc, (StoreTimeoutError, StoreUnavailableError))


async def retry_store_call(
    func: Callable[[], Awaitable[T]],
    *,
    db: AsyncSession | None = None,
    attempts: int | None = None,
) -> T:
    """
    Run ``func`` and retry it from the start when the store timed out or was
    unreachable. Any other error propagates on the first failure.
    """
    attempts = max(settings.store_retry_attempts if attempts is None else attempts, 1)
    attempt = 1
    while True:
        try:
            return await func()
        except Exception as exc:
            if attempt >= attempts or not _is_retryable(exc):
                raise
            logger.warning("Retrying store operation after %s (attempt %d/%d)", type(exc).__name__, attempt, attempts)
            if db is not None:
                await db.rollback()
            attempt += 1
