from .permission import Permission
from .tenant import AccessRecord, Notice, Tenant, TenantStatus
from .user import PasswordScheme, Role, User, role_permissions
from .user_session import UserSession

__all__ = [
    "AccessRecord",
    "Notice",
    "PasswordScheme",
    "Permission",
    "Role",
    "Tenant",
    "TenantStatus",
    "User",
    "UserSession",
    "role_permissions",
]
