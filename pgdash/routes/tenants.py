"""
Client (tenant) administration routes (Admin only)

POST   /api/v1/admin/clients        → create a client
GET    /api/v1/admin/clients        → list clients
GET    /api/v1/admin/clients/{id}   → one client
PUT    /api/v1/admin/clients/{id}   → update; name and slug required
DELETE /api/v1/admin/clients/{id}   → delete with notices, accesses, users and their sessions
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.auth import require_admin
from pgdash.database import get_db
from pgdash.schemas.tenant import CascadeReportOut, TenantCreate, TenantOut, TenantUpdate
from pgdash.services.session_service import SessionUser
from pgdash.services.tenant_service import (
    create_tenant,
    delete_tenant,
    get_tenant,
    list_tenants,
    update_tenant,
)
from pgdash.utils.store import retry_store_call

router = APIRouter(tags=["Clients"])
logger = logging.getLogger(__name__)


@router.post("", response_model=TenantOut, status_code=status.HTTP_201_CREATED)
async def create_tenant_route(
    payload: TenantCreate,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
):
    return await create_tenant(
        name=payload.name,
        db=db,
        slug=payload.slug,
        plan=payload.plan,
        status=payload.status.value,
        drive_link=payload.drive_link,
        notes=payload.notes,
    )


@router.get("", response_model=list[TenantOut])
async def list_tenants_route(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
):
    return await list_tenants(db, skip=skip, limit=limit)


@router.get("/{tenant_id}", response_model=TenantOut)
async def get_tenant_route(
    tenant_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
):
    return await get_tenant(tenant_id, db)


@router.put("/{tenant_id}", response_model=TenantOut)
async def update_tenant_route(
    tenant_id: int,
    payload: TenantUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
):
    updates = payload.model_dump(exclude_unset=True)
    if payload.status is not None:
        updates["status"] = payload.status.value
    return await update_tenant(tenant_id, updates, db)


@router.delete("/{tenant_id}", response_model=CascadeReportOut)
async def delete_tenant_route(
    tenant_id: int,
    db: AsyncSession = Depends(get_db),
    admin: SessionUser = Depends(require_admin),
) -> CascadeReportOut:
    report = await retry_store_call(lambda: delete_tenant(tenant_id, db), db=db)
    logger.info("Client %s deleted by user_id=%s", tenant_id, admin.id)
    return CascadeReportOut(tenant_id=report.tenant_id, state=report.state.value, deleted=report.deleted)
