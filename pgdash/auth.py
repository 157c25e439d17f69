"""
Request-level authentication and authorization dependencies.

The session cookie is resolved through SessionManager.validate on every
request; nothing about a principal is cached between requests.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.config import settings
from pgdash.database import get_db
from pgdash.exceptions import UnauthenticatedError
from pgdash.services.authorization_service import ADMIN_ONLY, AuthorizationEngine
from pgdash.services.session_service import SessionManager, SessionToken, SessionUser

logger = logging.getLogger(__name__)


def set_session_cookie(response: Response, token: SessionToken, expires_at: datetime) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token.encode(),
        expires=expires_at,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
    )


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> SessionUser | None:
    """The principal behind the session cookie, or None."""
    raw_token = request.cookies.get(settings.session_cookie_name)
    if not raw_token:
        return None
    principal = await SessionManager(db).validate(raw_token)
    if principal is not None:
        request.state.principal = principal
    return principal


async def get_current_user(principal: SessionUser | None = Depends(get_optional_user)) -> SessionUser:
    if principal is None:
        raise UnauthenticatedError()
    return principal


async def require_admin(
    principal: SessionUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SessionUser:
    """Coarse gate for the admin area."""
    await AuthorizationEngine(db).require(principal, ADMIN_ONLY)
    return principal


def require_permission(code: str) -> Callable:
    """Dependency factory for a fine-grained permission check."""

    async def _require_permission(
        principal: SessionUser = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> SessionUser:
        await AuthorizationEngine(db).require(principal, code)
        return principal

    return _require_permission
