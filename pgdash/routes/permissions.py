"""
Permission catalog routes (Admin only)

GET  /api/v1/admin/permissions         → every permission, flat and grouped by category
POST /api/v1/admin/permissions/reload  → re-read the catalog snapshot from the store
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.auth import require_admin
from pgdash.database import get_db
from pgdash.schemas.permission import CatalogReloadOut, PermissionCatalogOut, PermissionOut
from pgdash.services.permission_service import permission_catalog
from pgdash.services.session_service import SessionUser

router = APIRouter(tags=["Permissions"])
logger = logging.getLogger(__name__)


@router.get("", response_model=PermissionCatalogOut)
async def list_permissions(
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
) -> PermissionCatalogOut:
    await permission_catalog.ensure_loaded(db)
    return PermissionCatalogOut(
        permissions=[PermissionOut.model_validate(e) for e in permission_catalog.entries()],
        grouped={
            category: [PermissionOut.model_validate(e) for e in entries]
            for category, entries in permission_catalog.grouped().items()
        },
    )


@router.post("/reload", response_model=CatalogReloadOut)
async def reload_permissions(
    db: AsyncSession = Depends(get_db),
    admin: SessionUser = Depends(require_admin),
) -> CatalogReloadOut:
    loaded = await permission_catalog.reload(db)
    logger.info("Permission catalog reloaded by user_id=%s", admin.id)
    return CatalogReloadOut(loaded=loaded)
