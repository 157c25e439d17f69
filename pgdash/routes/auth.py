"""
Authentication routes

POST /auth/login   → check credentials, open a session, set the session cookie
POST /auth/logout  → revoke the session and clear the cookie
GET  /auth/me      → the current principal
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.auth import clear_session_cookie, get_current_user, set_session_cookie
from pgdash.config import settings
from pgdash.database import get_db
from pgdash.exceptions import InvalidInputError
from pgdash.middleware.logging import client_ip
from pgdash.schemas.auth import CurrentUserOut, LoginRequest, LoginResponse, LogoutResponse
from pgdash.services.session_service import SessionManager, SessionUser
from pgdash.utils.store import retry_store_call

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    if not payload.email or not payload.password:
        raise InvalidInputError("Email and password are required")

    manager = SessionManager(db)
    result = await retry_store_call(
        lambda: manager.login(
            payload.email,
            payload.password,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        ),
        db=db,
    )
    set_session_cookie(response, result.token, result.expires_at)
    request.state.principal = result.user
    return LoginResponse(user=CurrentUserOut.from_principal(result.user))


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> LogoutResponse:
    """Always succeeds; the cookie is cleared even when the session was already gone."""
    raw_token = request.cookies.get(settings.session_cookie_name)
    if raw_token:
        await SessionManager(db).revoke(raw_token)
    clear_session_cookie(response)
    return LogoutResponse()


@router.get("/me", response_model=CurrentUserOut)
async def me(principal: SessionUser = Depends(get_current_user)) -> CurrentUserOut:
    return CurrentUserOut.from_principal(principal)
