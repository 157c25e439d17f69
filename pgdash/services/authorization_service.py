"""
AuthorizationEngine

One entry point answers "may this principal do this":

* a ``RoleRequirement`` is the coarse check, a plain role-name comparison
  with no store round trip (Admin aliases compare equal);
* a permission code is the fine check, membership of the code in the
  principal's role permission set, read fresh from the store.

A principal whose role is the Admin role passes every check. Denials are
final; nothing degrades to a reduced view.
"""

import enum
import logging
from dataclasses import dataclass

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.exceptions import UnauthenticatedError, UnauthorizedError
from pgdash.services.permission_service import PermissionCatalog, permission_catalog
from pgdash.services.role_service import ADMIN_ROLE_NAME, RoleRegistry, canonical_role_name
from pgdash.services.session_service import SessionUser

logger = logging.getLogger(__name__)


class DenyReason(str, enum.Enum):
    unauthenticated = "unauthenticated"
    role_mismatch = "role_mismatch"
    missing_permission = "missing_permission"
    unknown_permission = "unknown_permission"


@dataclass(frozen=True)
class RoleRequirement:
    role_name: str

    @property
    def canonical(self) -> str:
        return canonical_role_name(self.role_name)


ADMIN_ONLY = RoleRequirement(ADMIN_ROLE_NAME)

Requirement = str | RoleRequirement


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: DenyReason | None = None

    @property
    def status_code(self) -> int:
        if self.allowed:
            return status.HTTP_200_OK
        if self.reason == DenyReason.unauthenticated:
            return status.HTTP_401_UNAUTHORIZED
        return status.HTTP_403_FORBIDDEN

    def raise_for_denial(self) -> None:
        if self.allowed:
            return
        if self.reason == DenyReason.unauthenticated:
            raise UnauthenticatedError()
        raise UnauthorizedError()


ALLOW = AuthorizationDecision(allowed=True)


def decide(
    principal: SessionUser | None,
    requirement: Requirement,
    permission_codes: set[str] | None = None,
) -> AuthorizationDecision:
    """Pure decision given everything already looked up."""
    if principal is None:
        return AuthorizationDecision(False, DenyReason.unauthenticated)
    if principal.is_superuser:
        return ALLOW
    if isinstance(requirement, RoleRequirement):
        if canonical_role_name(principal.role_name).casefold() == requirement.canonical.casefold():
            return ALLOW
        return AuthorizationDecision(False, DenyReason.role_mismatch)
    if requirement in (permission_codes or set()):
        return ALLOW
    return AuthorizationDecision(False, DenyReason.missing_permission)


class AuthorizationEngine:
    def __init__(self, db: AsyncSession, catalog: PermissionCatalog | None = None) -> None:
        self.db = db
        self.catalog = catalog or permission_catalog
        self.roles = RoleRegistry(db)

    async def authorize(self, principal: SessionUser | None, requirement: Requirement) -> AuthorizationDecision:
        if principal is None or principal.is_superuser or isinstance(requirement, RoleRequirement):
            decision = decide(principal, requirement)
        else:
            await self.catalog.ensure_loaded(self.db)
            if not self.catalog.has_code(requirement):
                logger.warning("Authorization requested for unknown permission code %r", requirement)
                decision = AuthorizationDecision(False, DenyReason.unknown_permission)
            else:
                codes = await self.roles.get_permission_codes(principal.role_id)
                decision = decide(principal, requirement, codes)

        if not decision.allowed and principal is not None:
            logger.info(
                "Access denied: user_id=%s requirement=%s reason=%s",
                principal.id,
                requirement,
                decision.reason.value,
            )
        return decision

    async def require(self, principal: SessionUser | None, requirement: Requirement) -> None:
        """Raise UnauthenticatedError / UnauthorizedError unless allowed."""
        decision = await self.authorize(principal, requirement)
        decision.raise_for_denial()
