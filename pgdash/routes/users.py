"""
User administration routes (Admin only)

GET    /api/v1/admin/users        → list users, newest first
POST   /api/v1/admin/users        → create a user
PUT    /api/v1/admin/users/{id}   → partial update; a new password revokes the user's sessions
DELETE /api/v1/admin/users/{id}   → delete a user other than yourself
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from pgdash.auth import require_admin
from pgdash.database import get_db
from pgdash.schemas.user import UserCreate, UserOut, UserUpdate
from pgdash.services.session_service import SessionManager, SessionUser
from pgdash.services.user_service import UserDirectory

router = APIRouter(tags=["Users"])


@router.get("", response_model=list[UserOut])
async def list_users(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
) -> list[UserOut]:
    users = await UserDirectory(db).list_users(skip=skip, limit=limit)
    return [UserOut.from_user(u) for u in users]


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
) -> UserOut:
    user = await UserDirectory(db).create_user(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role_id=payload.role_id,
        tenant_id=payload.tenant_id,
        avatar_url=payload.avatar_url,
    )
    return UserOut.from_user(user)


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: SessionUser = Depends(require_admin),
) -> UserOut:
    changes = payload.model_dump(exclude_unset=True)
    user, password_changed = await UserDirectory(db).update_user(user_id, **changes)
    if password_changed:
        await SessionManager(db).revoke_all_for_user(user.id)
    return UserOut.from_user(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: SessionUser = Depends(require_admin),
) -> None:
    await UserDirectory(db).delete_user(user_id, acting_user_id=admin.id)
