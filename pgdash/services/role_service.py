"""
RoleRegistry

Roles are named permission sets. System roles (``is_system``) can be edited
but never deleted, and no role can be deleted while a user holds it. Name
uniqueness is case-insensitive and backed by the ``uq_roles_name_lower``
index, so a concurrent duplicate that slips past the pre-check still fails
with DuplicateNameError.
"""

import logging
from collections.abc import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.config import settings
from pgdash.exceptions import (
    DuplicateNameError,
    InvalidInputError,
    RoleInUseError,
    RoleNotFoundError,
    SystemRoleProtectedError,
)
from pgdash.models.permission import Permission
from pgdash.models.user import Role, User, role_permissions
from pgdash.permissions_config.permissions import SYSTEM_ROLES
from pgdash.utils import store

logger = logging.getLogger(__name__)

DEFAULT_ROLE_COLOR = "#6B7280"
ADMIN_ROLE_NAME = "ADMIN"
MAX_ROLE_NAME_LENGTH = 100


def canonical_role_name(name: str | None) -> str:
    """Fold the localized Admin aliases onto one canonical name."""
    if not name:
        return ""
    aliases = {alias.casefold() for alias in settings.admin_role_aliases}
    if name.casefold() in aliases:
        return ADMIN_ROLE_NAME
    return name


def is_admin_role(role: Role | None) -> bool:
    if role is None:
        return False
    return bool(role.implicit_superuser)


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidInputError("Role name is required", field="name")
    if len(cleaned) > MAX_ROLE_NAME_LENGTH:
        raise InvalidInputError(f"Role name must be at most {MAX_ROLE_NAME_LENGTH} characters", field="name")
    return cleaned


class RoleRegistry:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ── Reads ────────────────────────────────────────────────────────────────

    async def list_roles(self) -> list[Role]:
        """System roles first, then alphabetical."""
        result = await store.execute(
            self.db,
            select(Role).order_by(Role.is_system.desc(), func.lower(Role.name), Role.id),
            "roles.list",
        )
        return list(result.scalars().all())

    async def get_role(self, role_id: int, *, for_update: bool = False) -> Role:
        query = select(Role).where(Role.id == role_id)
        if for_update:
            # Locked reads always repopulate, permissions included
            query = query.with_for_update().execution_options(populate_existing=True)
        role = await store.scalar(self.db, query, "roles.get")
        if role is None:
            raise RoleNotFoundError(role_id)
        return role

    async def find_by_name(self, name: str) -> Role | None:
        """Case-insensitive lookup. Admin aliases resolve to the Admin role."""
        role = await store.scalar(
            self.db,
            select(Role).where(func.lower(Role.name) == name.strip().lower()),
            "roles.find_by_name",
        )
        if role is None and canonical_role_name(name.strip()) == ADMIN_ROLE_NAME:
            role = await self.get_admin_role()
        return role

    async def get_admin_role(self) -> Role | None:
        return await store.scalar(
            self.db,
            select(Role).where(Role.implicit_superuser.is_(True)).order_by(Role.id).limit(1),
            "roles.get_admin",
        )

    async def get_permission_codes(self, role_id: int) -> set[str]:
        result = await store.execute(
            self.db,
            select(Permission.code)
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .where(role_permissions.c.role_id == role_id),
            "roles.permission_codes",
        )
        return set(result.scalars().all())

    async def count_users(self, role_id: int) -> int:
        count = await store.scalar(
            self.db,
            select(func.count()).select_from(User).where(User.role_id == role_id),
            "roles.count_users",
        )
        return int(count or 0)

    # ── Writes ───────────────────────────────────────────────────────────────

    async def create_role(
        self,
        name: str,
        description: str | None = None,
        color: str | None = None,
        permission_ids: Iterable[int] = (),
    ) -> Role:
        name = _clean_name(name)
        try:
            async with store.transaction(self.db, "roles.create"):
                await self._ensure_name_available(name)
                permissions = await self._resolve_permissions(permission_ids)
                role = Role(
                    name=name,
                    description=description or None,
                    color=color or DEFAULT_ROLE_COLOR,
                    is_system=False,
                    implicit_superuser=False,
                    permissions=permissions,
                )
                self.db.add(role)
                await store.flush(self.db, "roles.create")
        except IntegrityError as exc:
            raise DuplicateNameError("Role", "name", name) from exc

        logger.info("Role created: id=%s name=%s permissions=%d", role.id, role.name, len(permissions))
        return role

    async def update_role(
        self,
        role_id: int,
        name: str,
        description: str | None = None,
        color: str | None = None,
        permission_ids: Iterable[int] = (),
    ) -> Role:
        """
        Replace a role's attributes and its whole permission set.

        The new set is exactly ``permission_ids``; nothing from the previous set
        survives unless listed again. System roles are editable here.
        """
        name = _clean_name(name)
        try:
            async with store.transaction(self.db, "roles.update"):
                role = await self.get_role(role_id, for_update=True)
                await self._ensure_name_available(name, exclude_id=role_id)
                permissions = await self._resolve_permissions(permission_ids)
                role.name = name
                role.description = description or None
                role.color = color or DEFAULT_ROLE_COLOR
                role.permissions = permissions
                await store.flush(self.db, "roles.update")
        except IntegrityError as exc:
            raise DuplicateNameError("Role", "name", name) from exc

        logger.info("Role updated: id=%s name=%s permissions=%d", role.id, role.name, len(permissions))
        return role

    async def delete_role(self, role_id: int) -> None:
        """Checks run in order: exists, not a system role, not assigned to any user."""
        try:
            async with store.transaction(self.db, "roles.delete"):
                role = await self.get_role(role_id, for_update=True)
                if role.is_system:
                    raise SystemRoleProtectedError(role_id)
                user_count = await self.count_users(role_id)
                if user_count:
                    raise RoleInUseError(role_id, user_count)
                await store.execute(
                    self.db,
                    delete(role_permissions).where(role_permissions.c.role_id == role.id),
                    "roles.delete_permissions",
                )
                await store.execute(
                    self.db,
                    delete(Role).where(Role.id == role.id).execution_options(synchronize_session=False),
                    "roles.delete",
                )
        except IntegrityError as exc:
            # A user was assigned the role between the count and the delete
            raise RoleInUseError(role_id) from exc

        logger.info("Role deleted: id=%s", role_id)

    # ── Helpers ──────────────────────────────────────────────────────────────

    async def _ensure_name_available(self, name: str, exclude_id: int | None = None) -> None:
        # Admin aliases all name the one superuser role
        if canonical_role_name(name) == ADMIN_ROLE_NAME:
            admin = await self.get_admin_role()
            if admin is None or admin.id != exclude_id:
                raise DuplicateNameError("Role", "name", name)
            return
        query = select(Role.id).where(func.lower(Role.name) == name.lower())
        if exclude_id is not None:
            query = query.where(Role.id != exclude_id)
        if await store.scalar(self.db, query, "roles.check_name") is not None:
            raise DuplicateNameError("Role", "name", name)

    async def _resolve_permissions(self, permission_ids: Iterable[int]) -> list[Permission]:
        wanted = {int(pid) for pid in permission_ids}
        if not wanted:
            return []
        result = await store.execute(
            self.db,
            select(Permission).where(Permission.id.in_(wanted)).order_by(Permission.code),
            "roles.resolve_permissions",
        )
        permissions = list(result.scalars().all())
        unknown = wanted - {p.id for p in permissions}
        if unknown:
            if settings.strict_permission_ids:
                raise InvalidInputError(
                    "Unknown permission ids",
                    field="permissions",
                    details={"unknown_permission_ids": sorted(unknown)},
                )
            logger.warning("Ignoring unknown permission ids: %s", sorted(unknown))
        return permissions


async def seed_system_roles(db: AsyncSession) -> list[Role]:
    """Create any missing built-in role and make sure existing ones are flagged as system roles."""
    seeded: list[Role] = []
    async with store.transaction(db, "roles.seed"):
        for definition in SYSTEM_ROLES:
            names = {definition.name.lower()}
            if canonical_role_name(definition.name) == ADMIN_ROLE_NAME:
                # A store seeded under a localized alias keeps that row
                names.update(alias.lower() for alias in settings.admin_role_aliases)
            role = await store.scalar(
                db,
                select(Role).where(func.lower(Role.name).in_(names)).order_by(Role.id).limit(1),
                "roles.seed",
            )
            if role is None:
                result = await store.execute(
                    db,
                    select(Permission).where(Permission.code.in_(definition.permissions)),
                    "roles.seed",
                )
                role = Role(
                    name=definition.name,
                    description=definition.description,
                    color=definition.color,
                    is_system=True,
                    implicit_superuser=definition.implicit_superuser,
                    permissions=list(result.scalars().all()),
                )
                db.add(role)
                logger.info("Seeded system role %s", definition.name)
            else:
                role.is_system = True
                if definition.implicit_superuser:
                    role.implicit_superuser = True
            seeded.append(role)
        await store.flush(db, "roles.seed")
    return seeded
