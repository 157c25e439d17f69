from .auth import CurrentUserOut, LoginRequest, LoginResponse, LogoutResponse
from .permission import CatalogReloadOut, PermissionCatalogOut, PermissionOut
from .role import RoleIn, RoleOut
from .tenant import CascadeReportOut, TenantCreate, TenantOut, TenantUpdate
from .user import UserCreate, UserOut, UserUpdate

# Define the public API of this module
__all__ = [
    "CurrentUserOut",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "CatalogReloadOut",
    "PermissionCatalogOut",
    "PermissionOut",
    "RoleIn",
    "RoleOut",
    "CascadeReportOut",
    "TenantCreate",
    "TenantOut",
    "TenantUpdate",
    "UserCreate",
    "UserOut",
    "UserUpdate",
]
