from pydantic import BaseModel, ConfigDict


class PermissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    description: str | None = None
    category: str


class PermissionCatalogOut(BaseModel):
    permissions: list[PermissionOut]
    grouped: dict[str, list[PermissionOut]]


class CatalogReloadOut(BaseModel):
    loaded: int
