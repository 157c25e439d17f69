"""
SessionManager

Issues, validates and revokes login sessions.

The session cookie carries ``<user_id>:<session_id>``. ``session_id`` is a
random URL-safe string and the primary key of a row in ``sessions``; a token
is only honoured while that row exists for that user, has not been revoked
and has not reached ``expires_at``. Expiry is checked on every validation
against the injected clock. Nothing sweeps expired rows eagerly.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.config import settings
from pgdash.exceptions import InvalidCredentialsError, InvalidInputError
from pgdash.models.user import PasswordScheme, User
from pgdash.models.user_session import UserSession
from pgdash.services.credential_service import CredentialStore, credential_store
from pgdash.services.role_service import is_admin_role
from pgdash.utils import store
from pgdash.utils.clock import Clock, as_utc, system_clock

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 32
# User ids are BIGINT; anything wider cannot name a row
MAX_USER_ID = 2**63 - 1
MAX_USER_ID_DIGITS = len(str(MAX_USER_ID))


@dataclass(frozen=True)
class SessionToken:
    user_id: int
    session_id: str

    def encode(self) -> str:
        return f"{self.user_id}:{self.session_id}"

    @classmethod
    def parse(cls, raw: str | None) -> "SessionToken | None":
        """Return None for anything that is not ``<int>:<non-empty id>``."""
        if not raw or not isinstance(raw, str):
            return None
        user_part, sep, session_part = raw.partition(":")
        if not sep or not session_part or ":" in session_part:
            return None
        if not (user_part.isascii() and user_part.isdigit()) or len(user_part) > MAX_USER_ID_DIGITS:
            return None
        user_id = int(user_part)
        if user_id > MAX_USER_ID:
            return None
        return cls(user_id=user_id, session_id=session_part)


@dataclass(frozen=True)
class TenantSummary:
    id: int
    name: str
    slug: str


@dataclass(frozen=True)
class SessionUser:
    """The principal behind a validated session."""

    id: int
    name: str
    email: str
    role_id: int
    role_name: str
    is_superuser: bool
    tenant_id: int | None = None
    avatar_url: str | None = None
    tenant: TenantSummary | None = None
    session_id: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User, session: UserSession | None = None) -> "SessionUser":
        tenant = None
        if user.tenant is not None:
            tenant = TenantSummary(id=user.tenant.id, name=user.tenant.name, slug=user.tenant.slug)
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role_id=user.role_id,
            role_name=user.role.name,
            is_superuser=is_admin_role(user.role),
            tenant_id=user.tenant_id,
            avatar_url=user.avatar_url,
            tenant=tenant,
            session_id=session.id if session is not None else None,
            expires_at=as_utc(session.expires_at) if session is not None else None,
        )


@dataclass(frozen=True)
class LoginResult:
    user: SessionUser
    token: SessionToken
    expires_at: datetime


class SessionManager:
    def __init__(
        self,
        db: AsyncSession,
        credentials: CredentialStore | None = None,
        clock: Clock | None = None,
        ttl: timedelta | None = None,
    ) -> None:
        self.db = db
        self.credentials = credentials or credential_store
        self.clock = clock or system_clock
        self.ttl = ttl or timedelta(days=settings.session_ttl_days)

    async def login(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> LoginResult:
        """
        Check credentials and open a new session.

        Unknown email and wrong password raise the same InvalidCredentialsError
        after the same amount of hashing work. A legacy plaintext credential
        is rewritten as bcrypt in the same transaction that stores the session.
        """
        if not email or not password:
            raise InvalidInputError("Email and password are required")

        user = await store.scalar(
            self.db,
            select(User).where(func.lower(User.email) == email.strip().lower()),
            "sessions.login_lookup",
        )
        if user is None:
            await self.credentials.dummy_verify_async()
            logger.warning("Failed login attempt")
            raise InvalidCredentialsError()

        check = await self.credentials.check_async(password, user.password_hash, user.password_scheme)
        if not check.valid:
            logger.warning("Failed login attempt for user_id=%s", user.id)
            raise InvalidCredentialsError()

        now = self.clock.now()
        expires_at = now + self.ttl
        session = UserSession(
            id=secrets.token_urlsafe(SESSION_ID_BYTES),
            user_id=user.id,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=now,
            expires_at=expires_at,
        )

        # A session that could not be stored must not be handed out
        async with store.transaction(self.db, "sessions.create"):
            if check.needs_upgrade:
                was_legacy = user.password_scheme == PasswordScheme.legacy_plaintext.value
                user.password_hash = check.replacement_hash
                user.password_scheme = PasswordScheme.bcrypt.value
                if was_legacy:
                    logger.warning("Upgraded legacy plaintext credential for user_id=%s", user.id)
            self.db.add(session)

        logger.info("Session issued for user_id=%s", user.id)
        token = SessionToken(user_id=user.id, session_id=session.id)
        return LoginResult(user=SessionUser.from_user(user, session), token=token, expires_at=expires_at)

    async def validate(self, raw_token: str | None) -> SessionUser | None:
        """
        Resolve a token to its principal, or None.

        Malformed tokens, unknown or revoked sessions, sessions of another
        user, expired sessions and deleted users all yield None. Store
        failures are raised, never reported as an anonymous caller.
        """
        token = SessionToken.parse(raw_token)
        if token is None:
            return None

        now = self.clock.now()
        result = await store.execute(
            self.db,
            select(UserSession, User)
            .join(User, User.id == UserSession.user_id)
            .where(
                UserSession.id == token.session_id,
                UserSession.user_id == token.user_id,
                UserSession.revoked_at.is_(None),
                UserSession.expires_at > now,
            ),
            "sessions.validate",
        )
        row = result.first()
        if row is None:
            return None
        session, user = row
        # Re-check in Python; SQLite compares stored datetimes as text
        if as_utc(session.expires_at) <= now:
            return None
        return SessionUser.from_user(user, session)

    async def revoke(self, raw_token: str | None) -> bool:
        """Mark the session revoked. Repeating it, or passing garbage, is not an error."""
        token = SessionToken.parse(raw_token)
        if token is None:
            return False
        async with store.transaction(self.db, "sessions.revoke"):
            result = await store.execute(
                self.db,
                update(UserSession)
                .where(
                    UserSession.id == token.session_id,
                    UserSession.user_id == token.user_id,
                    UserSession.revoked_at.is_(None),
                )
                .values(revoked_at=self.clock.now())
                .execution_options(synchronize_session=False),
                "sessions.revoke",
            )
        revoked = bool(result.rowcount)
        if revoked:
            logger.info("Session revoked for user_id=%s", token.user_id)
        return revoked

    async def revoke_all_for_user(self, user_id: int) -> int:
        async with store.transaction(self.db, "sessions.revoke_all"):
            result = await store.execute(
                self.db,
                update(UserSession)
                .where(UserSession.user_id == user_id, UserSession.revoked_at.is_(None))
                .values(revoked_at=self.clock.now())
                .execution_options(synchronize_session=False),
                "sessions.revoke_all",
            )
        count = result.rowcount or 0
        logger.info("Revoked %d sessions for user_id=%s", count, user_id)
        return count

    async def list_active_sessions(self, user_id: int) -> list[UserSession]:
        now = self.clock.now()
        result = await store.execute(
            self.db,
            select(UserSession)
            .where(
                UserSession.user_id == user_id,
                UserSession.revoked_at.is_(None),
                UserSession.expires_at > now,
            )
            .order_by(UserSession.created_at.desc()),
            "sessions.list_active",
        )
        return [s for s in result.scalars().all() if as_utc(s.expires_at) > now]
