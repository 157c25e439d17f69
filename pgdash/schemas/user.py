from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from pgdash.models.user import User


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72, description="bcrypt reads at most 72 bytes.")
    role_id: int | None = None
    tenant_id: int | None = None
    avatar_url: str | None = Field(None, max_length=500)


class UserUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=6, max_length=72)
    role_id: int | None = None
    tenant_id: int | None = None
    avatar_url: str | None = Field(None, max_length=500)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role_id: int
    role: str | None = None
    tenant_id: int | None = None
    avatar_url: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role_id=user.role_id,
            role=user.role_name,
            tenant_id=user.tenant_id,
            avatar_url=user.avatar_url,
            created_at=user.created_at,
        )
