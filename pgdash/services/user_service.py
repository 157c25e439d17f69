"""
UserDirectory

Users belong to one role and optionally one tenant. Emails are stored
lower-cased and are unique regardless of case. A user holding the Admin
role never belongs to a tenant.
"""

import logging

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.config import settings
from pgdash.exceptions import (
    DuplicateNameError,
    InvalidInputError,
    InvalidOperationError,
    RoleNotFoundError,
    TenantNotFoundError,
    UserNotFoundError,
)
from pgdash.models.tenant import Tenant
from pgdash.models.user import PasswordScheme, Role, User
from pgdash.models.user_session import UserSession
from pgdash.services.credential_service import CredentialStore, credential_store
from pgdash.services.role_service import RoleRegistry, is_admin_role
from pgdash.utils import store

logger = logging.getLogger(__name__)

_UNSET = object()


def normalize_email(email: str | None) -> str:
    normalized = (email or "").strip().lower()
    if not normalized or "@" not in normalized:
        raise InvalidInputError("A valid email is required", field="email")
    return normalized


class UserDirectory:
    def __init__(self, db: AsyncSession, credentials: CredentialStore | None = None) -> None:
        self.db = db
        self.credentials = credentials or credential_store
        self.roles = RoleRegistry(db)

    async def get_user(self, user_id: int) -> User:
        user = await store.scalar(self.db, select(User).where(User.id == user_id), "users.get")
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def get_user_by_email(self, email: str) -> User | None:
        """Case-insensitive; returns None for an unknown address."""
        if not email:
            return None
        return await store.scalar(
            self.db,
            select(User).where(func.lower(User.email) == email.strip().lower()),
            "users.get_by_email",
        )

    async def list_users(self, skip: int = 0, limit: int = 100) -> list[User]:
        result = await store.execute(
            self.db,
            select(User).order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit),
            "users.list",
        )
        return list(result.scalars().unique().all())

    async def count_users_with_role(self, role_id: int) -> int:
        return await self.roles.count_users(role_id)

    async def create_user(
        self,
        name: str,
        email: str,
        password: str,
        role_id: int | None = None,
        tenant_id: int | None = None,
        avatar_url: str | None = None,
    ) -> User:
        name = (name or "").strip()
        if not name:
            raise InvalidInputError("Name is required", field="name")
        email = normalize_email(email)
        password_hash = await self.credentials.hash_async(password)

        try:
            async with store.transaction(self.db, "users.create"):
                role = await self._resolve_role(role_id)
                tenant = await self._resolve_tenant(role, tenant_id)
                if await self.get_user_by_email(email) is not None:
                    raise DuplicateNameError("User", "email", email)
                user = User(
                    name=name,
                    email=email,
                    password_hash=password_hash,
                    password_scheme=PasswordScheme.bcrypt.value,
                    role=role,
                    tenant=tenant,
                    avatar_url=avatar_url or None,
                )
                self.db.add(user)
                await store.flush(self.db, "users.create")
        except IntegrityError as exc:
            raise DuplicateNameError("User", "email", email) from exc

        logger.info("User created: id=%s role=%s tenant=%s", user.id, role.name, user.tenant_id)
        return user

    async def update_user(
        self,
        user_id: int,
        name: str | None = None,
        email: str | None = None,
        password: str | None = None,
        role_id: int | None = None,
        tenant_id=_UNSET,
        avatar_url=_UNSET,
    ) -> tuple[User, bool]:
        """
        Apply a partial update.

        Returns the user and whether the password changed, so the caller can
        revoke the user's sessions.
        """
        password_hash = await self.credentials.hash_async(password) if password else None
        normalized = normalize_email(email) if email is not None else None

        try:
            async with store.transaction(self.db, "users.update"):
                user = await self.get_user(user_id)
                if name is not None:
                    if not name.strip():
                        raise InvalidInputError("Name is required", field="name")
                    user.name = name.strip()
                if normalized is not None and normalized != user.email:
                    existing = await self.get_user_by_email(normalized)
                    if existing is not None and existing.id != user.id:
                        raise DuplicateNameError("User", "email", normalized)
                    user.email = normalized
                if password_hash is not None:
                    user.password_hash = password_hash
                    user.password_scheme = PasswordScheme.bcrypt.value
                if avatar_url is not _UNSET:
                    user.avatar_url = avatar_url or None

                role = await self.roles.get_role(role_id) if role_id is not None else user.role
                wanted_tenant = user.tenant_id if tenant_id is _UNSET else tenant_id
                user.role = role
                user.tenant = await self._resolve_tenant(role, wanted_tenant)
                await store.flush(self.db, "users.update")
        except IntegrityError as exc:
            raise DuplicateNameError("User", "email", normalized) from exc

        logger.info("User updated: id=%s password_changed=%s", user.id, password_hash is not None)
        return user, password_hash is not None

    async def delete_user(self, user_id: int, acting_user_id: int | None = None) -> None:
        if acting_user_id is not None and user_id == acting_user_id:
            raise InvalidOperationError("You cannot delete your own account")

        async with store.transaction(self.db, "users.delete"):
            await self.get_user(user_id)
            await store.execute(
                self.db,
                delete(UserSession).where(UserSession.user_id == user_id).execution_options(synchronize_session=False),
                "users.delete_sessions",
            )
            await store.execute(
                self.db,
                delete(User).where(User.id == user_id).execution_options(synchronize_session=False),
                "users.delete",
            )
        logger.info("User deleted: id=%s by=%s", user_id, acting_user_id)

    async def reassign_role(self, from_role_id: int, to_role_id: int) -> int:
        """Move every holder of one role to another. Returns the number of users moved."""
        async with store.transaction(self.db, "users.reassign_role"):
            await self.roles.get_role(from_role_id)
            target = await self.roles.get_role(to_role_id)
            values: dict = {"role_id": target.id}
            if is_admin_role(target):
                values["tenant_id"] = None
            result = await store.execute(
                self.db,
                update(User)
                .where(User.role_id == from_role_id)
                .values(**values)
                .execution_options(synchronize_session=False),
                "users.reassign_role",
            )
        moved = result.rowcount or 0
        logger.info("Reassigned %d users from role %s to role %s", moved, from_role_id, to_role_id)
        return moved

    async def _resolve_role(self, role_id: int | None) -> Role:
        if role_id is not None:
            return await self.roles.get_role(role_id)
        role = await self.roles.find_by_name(settings.default_role_name)
        if role is None:
            raise RoleNotFoundError(settings.default_role_name)
        return role

    async def _resolve_tenant(self, role: Role, tenant_id: int | None) -> Tenant | None:
        if is_admin_role(role):
            if tenant_id is not None:
                logger.info("Dropping tenant %s for admin user", tenant_id)
            return None
        if tenant_id is None:
            return None
        tenant = await store.scalar(self.db, select(Tenant).where(Tenant.id == tenant_id), "tenants.get")
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return tenant
