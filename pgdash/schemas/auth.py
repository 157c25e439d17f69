from datetime import datetime

from pydantic import BaseModel, Field

from pgdash.services.session_service import SessionUser


class LoginRequest(BaseModel):
    # Kept as plain strings; a missing or malformed value must fail the same way as a wrong one
    email: str | None = Field(None, max_length=255)
    password: str | None = Field(None, max_length=255)


class TenantSummaryOut(BaseModel):
    id: int
    name: str
    slug: str


class CurrentUserOut(BaseModel):
    id: int
    name: str
    email: str
    role: str
    role_id: int
    is_admin: bool
    tenant_id: int | None = None
    tenant_slug: str | None = None
    tenant: TenantSummaryOut | None = None
    avatar_url: str | None = None
    session_expires_at: datetime | None = None

    @classmethod
    def from_principal(cls, principal: SessionUser) -> "CurrentUserOut":
        tenant = None
        if principal.tenant is not None:
            tenant = TenantSummaryOut(id=principal.tenant.id, name=principal.tenant.name, slug=principal.tenant.slug)
        return cls(
            id=principal.id,
            name=principal.name,
            email=principal.email,
            role=principal.role_name,
            role_id=principal.role_id,
            is_admin=principal.is_superuser,
            tenant_id=principal.tenant_id,
            tenant_slug=tenant.slug if tenant else None,
            tenant=tenant,
            avatar_url=principal.avatar_url,
            session_expires_at=principal.expires_at,
        )


class LoginResponse(BaseModel):
    success: bool = True
    user: CurrentUserOut


class LogoutResponse(BaseModel):
    success: bool = True
