from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from pgdash.models.tenant import TenantStatus


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: str | None = Field(None, max_length=100)
    plan: str | None = Field(None, max_length=50)
    status: TenantStatus = TenantStatus.active
    drive_link: str | None = Field(None, max_length=500)
    notes: str | None = None


class TenantUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=100)
    plan: str | None = Field(None, max_length=50)
    status: TenantStatus | None = None
    drive_link: str | None = Field(None, max_length=500)
    notes: str | None = None


class TenantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    plan: str | None = None
    status: str
    drive_link: str | None = None
    notes: str | None = None
    created_at: datetime | None = None


class CascadeReportOut(BaseModel):
    tenant_id: int
    state: str
    deleted: dict[str, int]
