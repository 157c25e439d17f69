"""
Role administration routes (Admin only)

GET    /api/v1/admin/roles        → list roles, system roles first
POST   /api/v1/admin/roles        → create a role
GET    /api/v1/admin/roles/{id}   → one role with its permissions
PUT    /api/v1/admin/roles/{id}   → replace name, description, color and permission set
DELETE /api/v1/admin/roles/{id}   → delete a non-system role nobody holds
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.auth import require_admin
from pgdash.database import get_db
from pgdash.schemas.role import RoleIn, RoleOut
from pgdash.services.role_service import RoleRegistry
from pgdash.services.session_service import SessionUser

router = APIRouter(tags=["Roles"])


@router.get("", response_model=list[RoleOut])
async def list_roles(
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
):
    return await RoleRegistry(db).list_roles()


@router.post("", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleIn,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
):
    return await RoleRegistry(db).create_role(
        payload.name,
        description=payload.description,
        color=payload.color,
        permission_ids=payload.permission_ids,
    )


@router.get("/{role_id}", response_model=RoleOut)
async def get_role(
    role_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
):
    return await RoleRegistry(db).get_role(role_id)


@router.put("/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: int,
    payload: RoleIn,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
):
    return await RoleRegistry(db).update_role(
        role_id,
        payload.name,
        description=payload.description,
        color=payload.color,
        permission_ids=payload.permission_ids,
    )


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
) -> None:
    await RoleRegistry(db).delete_role(role_id)
