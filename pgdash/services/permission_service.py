"""
PermissionCatalog

The universe of permission codes is fixed at deploy time
(``permissions_config.permissions``) and synced into the ``permissions``
table at startup. Request handling reads a process-wide snapshot instead of
querying the table each time; the snapshot is replaced only by an explicit
``reload`` (startup, or the admin reload endpoint).
"""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.models.permission import Permission
from pgdash.permissions_config.permissions import PERMISSION_DEFINITIONS, PermissionDefinition
from pgdash.utils import store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    id: int
    code: str
    name: str
    description: str | None
    category: str

    @classmethod
    def from_model(cls, permission: Permission) -> "CatalogEntry":
        return cls(
            id=permission.id,
            code=permission.code,
            name=permission.name,
            description=permission.description,
            category=permission.category,
        )


class PermissionCatalog:
    def __init__(self) -> None:
        self._by_id: dict[int, CatalogEntry] = {}
        self._by_code: dict[str, CatalogEntry] = {}
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    async def reload(self, db: AsyncSession) -> int:
        """Replace the snapshot with the current contents of the permissions table."""
        async with self._lock:
            result = await store.execute(
                db,
                select(Permission).order_by(Permission.category, Permission.name),
                "permissions.load",
            )
            entries = [CatalogEntry.from_model(p) for p in result.scalars().all()]
            # Swap whole dicts so readers never see a half-built catalog
            self._by_id = {e.id: e for e in entries}
            self._by_code = {e.code: e for e in entries}
            self._loaded = True
        logger.info("Permission catalog loaded: %d permissions", len(entries))
        return len(entries)

    async def ensure_loaded(self, db: AsyncSession) -> None:
        if not self._loaded:
            await self.reload(db)

    def invalidate(self) -> None:
        self._loaded = False

    def get_by_code(self, code: str) -> CatalogEntry | None:
        return self._by_code.get(code)

    def get_by_id(self, permission_id: int) -> CatalogEntry | None:
        return self._by_id.get(permission_id)

    def has_code(self, code: str) -> bool:
        return code in self._by_code

    def entries(self) -> list[CatalogEntry]:
        return sorted(self._by_id.values(), key=lambda e: (e.category, e.name))

    def grouped(self) -> dict[str, list[CatalogEntry]]:
        groups: dict[str, list[CatalogEntry]] = {}
        for entry in self.entries():
            groups.setdefault(entry.category, []).append(entry)
        return groups


async def sync_catalog(
    db: AsyncSession,
    definitions: list[PermissionDefinition] | None = None,
) -> int:
    """Insert catalog definitions missing from the table. Existing rows are left alone."""
    definitions = PERMISSION_DEFINITIONS if definitions is None else definitions
    result = await store.execute(db, select(Permission.code), "permissions.sync")
    existing = set(result.scalars().all())

    added = 0
    for definition in definitions:
        if definition.code in existing:
            continue
        db.add(
            Permission(
                code=definition.code,
                name=definition.name,
                description=definition.description,
                category=definition.category,
            )
        )
        added += 1

    if added:
        await store.commit(db, "permissions.sync")
        logger.info("Permission catalog synced: %d new permissions", added)
    return added


# Process-wide catalog snapshot
permission_catalog = PermissionCatalog()
