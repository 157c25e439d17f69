import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pgdash.schemas.permission import PermissionOut

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


class RoleIn(BaseModel):
    """Body for both create and update; update replaces every field and the permission set."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    color: str | None = None
    permission_ids: list[int] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Role name is required")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        if v in (None, ""):
            return None
        if not HEX_COLOR.match(v):
            raise ValueError("Color must be a hex value like #6B7280")
        return v.upper()


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    color: str
    is_system: bool
    implicit_superuser: bool
    permissions: list[PermissionOut] = []
    created_at: datetime | None = None
