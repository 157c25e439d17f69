"""
AccessCore

Programmatic entry point for callers that want tagged results rather than
exceptions. Every expected failure comes back as ``Result.failure`` with an
``ErrorKind`` and a caller-facing message; store timeouts and outages are
retried once before being reported. Programming errors still raise.
"""

import enum
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.exceptions import (
    CascadeAbortedError,
    DuplicateNameError,
    InvalidCredentialsError,
    InvalidInputError,
    InvalidOperationError,
    NotFoundError,
    PartialFailureError,
    PgDashError,
    RoleInUseError,
    StoreTimeoutError,
    StoreUnavailableError,
    SystemRoleProtectedError,
    UnauthenticatedError,
    UnauthorizedError,
)
from pgdash.models.user import Role
from pgdash.services.authorization_service import AuthorizationEngine, Requirement
from pgdash.services.credential_service import CredentialStore
from pgdash.services.permission_service import PermissionCatalog
from pgdash.services.role_service import RoleRegistry
from pgdash.services.session_service import LoginResult, SessionManager, SessionUser
from pgdash.services.tenant_service import CascadeReport, TenantCascadeDeleter
from pgdash.utils.clock import Clock
from pgdash.utils.store import retry_store_call

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    DUPLICATE_NAME = "duplicate_name"
    SYSTEM_ROLE_PROTECTED = "system_role_protected"
    IN_USE = "in_use"
    PARTIAL_FAILURE = "partial_failure"
    CASCADE_ABORTED = "cascade_aborted"
    TIMEOUT = "timeout"
    STORE_UNAVAILABLE = "store_unavailable"
    INVALID_INPUT = "invalid_input"
    INVALID_OPERATION = "invalid_operation"


# Order matters: subclasses before their bases
_KIND_BY_EXCEPTION: tuple[tuple[type[PgDashError], ErrorKind], ...] = (
    (InvalidCredentialsError, ErrorKind.INVALID_CREDENTIALS),
    (UnauthenticatedError, ErrorKind.UNAUTHENTICATED),
    (UnauthorizedError, ErrorKind.UNAUTHORIZED),
    (NotFoundError, ErrorKind.NOT_FOUND),
    (DuplicateNameError, ErrorKind.DUPLICATE_NAME),
    (SystemRoleProtectedError, ErrorKind.SYSTEM_ROLE_PROTECTED),
    (RoleInUseError, ErrorKind.IN_USE),
    (PartialFailureError, ErrorKind.PARTIAL_FAILURE),
    (CascadeAbortedError, ErrorKind.CASCADE_ABORTED),
    (StoreTimeoutError, ErrorKind.TIMEOUT),
    (StoreUnavailableError, ErrorKind.STORE_UNAVAILABLE),
    (InvalidInputError, ErrorKind.INVALID_INPUT),
    (InvalidOperationError, ErrorKind.INVALID_OPERATION),
)

_GENERIC_MESSAGES = {
    ErrorKind.INVALID_CREDENTIALS: "Invalid credentials",
    ErrorKind.UNAUTHENTICATED: "Authentication required",
    ErrorKind.UNAUTHORIZED: "Not permitted",
}


def error_kind_for(exc: PgDashError) -> ErrorKind:
    for exc_type, kind in _KIND_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return kind
    raise exc


@dataclass(frozen=True)
class Result(Generic[T]):
    ok: bool
    value: T | None = None
    error: ErrorKind | None = None
    message: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "Result[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, exc: PgDashError) -> "Result[T]":
        kind = error_kind_for(exc)
        if kind in _GENERIC_MESSAGES:
            return cls(ok=False, error=kind, message=_GENERIC_MESSAGES[kind])
        return cls(ok=False, error=kind, message=exc.message, details=exc.details or None)


class AccessCore:
    def __init__(
        self,
        db: AsyncSession,
        credentials: CredentialStore | None = None,
        catalog: PermissionCatalog | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.db = db
        self.sessions = SessionManager(db, credentials=credentials, clock=clock)
        self.roles = RoleRegistry(db)
        self.authorization = AuthorizationEngine(db, catalog=catalog)
        self.cascade = TenantCascadeDeleter(db)

    async def _run(self, operation: str, func: Callable[[], Awaitable[T]]) -> Result[T]:
        try:
            value = await retry_store_call(func, db=self.db)
        except PgDashError as exc:
            logger.debug("%s failed: %s", operation, type(exc).__name__)
            return Result.failure(exc)
        return Result.success(value)

    async def authenticate(
        self,
        email: str,
        password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Result[LoginResult]:
        return await self._run(
            "authenticate",
            lambda: self.sessions.login(email, password, ip_address=ip_address, user_agent=user_agent),
        )

    async def validate_session(self, token: str | None) -> Result[SessionUser]:
        """A token that does not resolve to a live session is UNAUTHENTICATED."""

        async def _validate() -> SessionUser:
            principal = await self.sessions.validate(token)
            if principal is None:
                raise UnauthenticatedError()
            return principal

        return await self._run("validate_session", _validate)

    async def authorize(self, principal: SessionUser | None, requirement: Requirement) -> Result[None]:
        return await self._run("authorize", lambda: self.authorization.require(principal, requirement))

    async def list_roles(self) -> Result[list[Role]]:
        return await self._run("list_roles", self.roles.list_roles)

    async def get_role(self, role_id: int) -> Result[Role]:
        return await self._run("get_role", lambda: self.roles.get_role(role_id))

    async def upsert_role(
        self,
        role_id: int | None,
        name: str,
        description: str | None = None,
        color: str | None = None,
        permission_ids: Iterable[int] = (),
    ) -> Result[Role]:
        """Create when ``role_id`` is None, otherwise replace that role."""
        permission_ids = list(permission_ids)
        if role_id is None:
            return await self._run(
                "create_role",
                lambda: self.roles.create_role(name, description, color, permission_ids),
            )
        return await self._run(
            "update_role",
            lambda: self.roles.update_role(role_id, name, description, color, permission_ids),
        )

    async def delete_role(self, role_id: int) -> Result[None]:
        return await self._run("delete_role", lambda: self.roles.delete_role(role_id))

    async def delete_tenant(self, tenant_id: int) -> Result[CascadeReport]:
        return await self._run("delete_tenant", lambda: self.cascade.delete(tenant_id))
