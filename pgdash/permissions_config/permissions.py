"""
Deploy-time permission catalog.

Each entry is (code, name, description, category). Codes are stable
identifiers referenced by role assignments and route guards; categories only
group the catalog for presentation. The catalog is synced into the
``permissions`` table at startup (insert-missing only).
"""

from typing import NamedTuple


class PermissionDefinition(NamedTuple):
    code: str
    name: str
    description: str
    category: str


PERMISSION_DEFINITIONS: list[PermissionDefinition] = [
    # Dashboard
    PermissionDefinition("dashboard.view", "View dashboard", "Open the tenant dashboard", "dashboard"),
    PermissionDefinition("reports.view", "View reports", "Read weekly and monthly reports", "dashboard"),
    # Clients (tenants)
    PermissionDefinition("clients.view", "View clients", "List and open client accounts", "clients"),
    PermissionDefinition("clients.manage", "Manage clients", "Create and edit client accounts", "clients"),
    PermissionDefinition("clients.delete", "Delete clients", "Delete a client and all of its data", "clients"),
    # Users
    PermissionDefinition("users.view", "View users", "List user accounts", "users"),
    PermissionDefinition("users.manage", "Manage users", "Create, edit and delete user accounts", "users"),
    # Roles
    PermissionDefinition("roles.view", "View roles", "List roles and their permissions", "roles"),
    PermissionDefinition("roles.manage", "Manage roles", "Create, edit and delete roles", "roles"),
    # Notices
    PermissionDefinition("notices.view", "View notices", "Read notices", "notices"),
    PermissionDefinition("notices.manage", "Manage notices", "Publish and remove notices", "notices"),
    # Accesses
    PermissionDefinition("accesses.view", "View accesses", "Read shared platform accesses", "accesses"),
    PermissionDefinition("accesses.manage", "Manage accesses", "Add and edit shared platform accesses", "accesses"),
    # Materials
    PermissionDefinition("materials.view", "View materials", "Open shared materials", "materials"),
    PermissionDefinition("materials.manage", "Manage materials", "Upload and remove materials", "materials"),
]

ALL_PERMISSIONS: list[str] = [p.code for p in PERMISSION_DEFINITIONS]


class SystemRoleDefinition(NamedTuple):
    name: str
    description: str
    color: str
    implicit_superuser: bool
    permissions: tuple[str, ...]


# Built-in roles: editable, never deletable
SYSTEM_ROLES: list[SystemRoleDefinition] = [
    SystemRoleDefinition(
        name="ADMIN",
        description="Agency administrator with unrestricted access",
        color="#DC2626",
        implicit_superuser=True,
        permissions=(),
    ),
    SystemRoleDefinition(
        name="CLIENTE",
        description="Client user scoped to a single tenant",
        color="#2563EB",
        implicit_superuser=False,
        permissions=(
            "dashboard.view",
            "reports.view",
            "notices.view",
            "accesses.view",
            "materials.view",
        ),
    ),
]
