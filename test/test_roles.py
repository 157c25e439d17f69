"""
Tests for RoleRegistry

Ordering, case-insensitive uniqueness, full permission-set replacement and
the delete guards (system role, role in use).
"""

import pytest
from sqlalchemy import select

from pgdash.config import settings
from pgdash.exceptions import (
    DuplicateNameError,
    InvalidInputError,
    RoleInUseError,
    RoleNotFoundError,
    SystemRoleProtectedError,
)
from pgdash.models import Role
from pgdash.services.role_service import (
    DEFAULT_ROLE_COLOR,
    RoleRegistry,
    canonical_role_name,
    is_admin_role,
    seed_system_roles,
)


@pytest.fixture
def registry(db) -> RoleRegistry:
    return RoleRegistry(db)


class TestSeeding:
    @pytest.mark.asyncio
    async def test_system_roles_seeded(self, seeded):
        assert set(seeded) == {"ADMIN", "CLIENTE"}
        assert seeded["ADMIN"].is_system and seeded["ADMIN"].implicit_superuser
        assert seeded["CLIENTE"].is_system and not seeded["CLIENTE"].implicit_superuser
        assert "dashboard.view" in seeded["CLIENTE"].permission_codes

    @pytest.mark.asyncio
    async def test_seeding_is_idempotent(self, db, seeded):
        await seed_system_roles(db)
        names = (await db.execute(select(Role.name))).scalars().all()
        assert sorted(names) == ["ADMIN", "CLIENTE"]

    @pytest.mark.asyncio
    async def test_admin_seeded_under_alias_is_adopted(self, db):
        db.add(Role(name="Administrador", color=DEFAULT_ROLE_COLOR, is_system=False, implicit_superuser=False))
        await db.commit()

        roles = {role.name: role for role in await seed_system_roles(db)}

        assert set(roles) == {"Administrador", "CLIENTE"}
        assert roles["Administrador"].is_system and roles["Administrador"].implicit_superuser


class TestListAndGet:
    @pytest.mark.asyncio
    async def test_system_roles_first_then_alphabetical(self, registry, seeded):
        for name in ["zeta", "Alpha", "beta"]:
            await registry.create_role(name)

        roles = await registry.list_roles()
        assert [r.name for r in roles] == ["ADMIN", "CLIENTE", "Alpha", "beta", "zeta"]

    @pytest.mark.asyncio
    async def test_get_role_with_permissions(self, registry, perm_ids):
        role = await registry.create_role("Editor", permission_ids=[perm_ids["clients.view"]])
        fetched = await registry.get_role(role.id)
        assert fetched.permission_codes == {"clients.view"}

    @pytest.mark.asyncio
    async def test_get_missing_role(self, registry, seeded):
        with pytest.raises(RoleNotFoundError):
            await registry.get_role(9999)

    @pytest.mark.asyncio
    async def test_find_by_name_resolves_admin_alias(self, registry, seeded):
        admin_id = seeded["ADMIN"].id
        assert (await registry.find_by_name("admin")).id == admin_id
        assert (await registry.find_by_name("Administrador")).id == admin_id


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_defaults(self, registry, seeded):
        role = await registry.create_role("  Financeiro  ")
        assert role.name == "Financeiro"
        assert role.color == DEFAULT_ROLE_COLOR
        assert role.is_system is False
        assert role.implicit_superuser is False
        assert role.permissions == []

    @pytest.mark.asyncio
    async def test_duplicate_name_is_case_insensitive(self, registry, seeded):
        await registry.create_role("Editor")
        with pytest.raises(DuplicateNameError):
            await registry.create_role("editor")

    @pytest.mark.asyncio
    async def test_cannot_shadow_system_role_name(self, registry, seeded):
        with pytest.raises(DuplicateNameError):
            await registry.create_role("cliente")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["Administrador", "administrador", "admin"])
    async def test_cannot_create_second_admin_under_an_alias(self, registry, seeded, name):
        with pytest.raises(DuplicateNameError):
            await registry.create_role(name)
        assert [r.name for r in await registry.list_roles()] == ["ADMIN", "CLIENTE"]

    @pytest.mark.asyncio
    async def test_cannot_rename_other_role_to_admin_alias(self, registry, seeded):
        editor = await registry.create_role("Editor")
        editor_id = editor.id
        with pytest.raises(DuplicateNameError):
            await registry.update_role(editor_id, "Administrador")
        assert (await registry.get_role(editor_id)).name == "Editor"

    @pytest.mark.asyncio
    async def test_admin_role_may_take_its_alias(self, registry, seeded):
        admin_id = seeded["ADMIN"].id
        renamed = await registry.update_role(admin_id, "Administrador")
        assert renamed.name == "Administrador"
        assert renamed.implicit_superuser is True

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, registry, seeded):
        with pytest.raises(InvalidInputError):
            await registry.create_role("   ")

    @pytest.mark.asyncio
    async def test_unknown_permission_ids_rejected(self, registry, perm_ids):
        with pytest.raises(InvalidInputError) as exc_info:
            await registry.create_role("Editor", permission_ids=[perm_ids["clients.view"], 9999])
        assert exc_info.value.details["unknown_permission_ids"] == [9999]
        assert await registry.find_by_name("Editor") is None

    @pytest.mark.asyncio
    async def test_unknown_permission_ids_ignored_when_lenient(self, registry, perm_ids, monkeypatch):
        monkeypatch.setattr(settings, "strict_permission_ids", False)
        role = await registry.create_role("Editor", permission_ids=[perm_ids["clients.view"], 9999])
        assert role.permission_codes == {"clients.view"}


class TestUpdate:
    @pytest.mark.asyncio
    async def test_permission_set_is_replaced_not_merged(self, db, registry, perm_ids):
        a, b, c = perm_ids["clients.view"], perm_ids["notices.view"], perm_ids["reports.view"]
        role = await registry.create_role("Editor", permission_ids=[a, b])
        role_id = role.id

        await registry.update_role(role_id, "Editor", permission_ids=[b, c])

        stored = await registry.get_permission_codes(role_id)
        assert stored == {"notices.view", "reports.view"}

    @pytest.mark.asyncio
    async def test_update_to_empty_set(self, registry, perm_ids):
        role = await registry.create_role("Editor", permission_ids=[perm_ids["clients.view"]])
        await registry.update_role(role.id, "Editor", permission_ids=[])
        assert await registry.get_permission_codes(role.id) == set()

    @pytest.mark.asyncio
    async def test_update_attributes(self, registry, seeded):
        role = await registry.create_role("Editor", description="old", color="#111111")
        updated = await registry.update_role(role.id, "Redator", description="new", color="#222222")
        assert (updated.name, updated.description, updated.color) == ("Redator", "new", "#222222")

    @pytest.mark.asyncio
    async def test_rename_to_existing_name_rejected(self, registry, seeded):
        await registry.create_role("Editor")
        other = await registry.create_role("Redator")
        other_id = other.id
        with pytest.raises(DuplicateNameError):
            await registry.update_role(other_id, "EDITOR")

    @pytest.mark.asyncio
    async def test_case_only_rename_of_same_role(self, registry, seeded):
        role = await registry.create_role("editor")
        updated = await registry.update_role(role.id, "Editor")
        assert updated.name == "Editor"

    @pytest.mark.asyncio
    async def test_system_role_is_editable(self, registry, seeded, perm_ids):
        cliente_id = seeded["CLIENTE"].id
        updated = await registry.update_role(cliente_id, "CLIENTE", permission_ids=[perm_ids["dashboard.view"]])
        assert updated.is_system is True
        assert updated.permission_codes == {"dashboard.view"}

    @pytest.mark.asyncio
    async def test_update_missing_role(self, registry, seeded):
        with pytest.raises(RoleNotFoundError):
            await registry.update_role(9999, "Ghost")

    def test_is_system_cannot_be_cleared(self):
        role = Role(name="Fixed", is_system=True)
        with pytest.raises(ValueError):
            role.is_system = False


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_unused_role(self, registry, seeded):
        role = await registry.create_role("Temp")
        role_id = role.id
        await registry.delete_role(role_id)
        with pytest.raises(RoleNotFoundError):
            await registry.get_role(role_id)

    @pytest.mark.asyncio
    async def test_delete_missing_role(self, registry, seeded):
        with pytest.raises(RoleNotFoundError):
            await registry.delete_role(9999)

    @pytest.mark.asyncio
    async def test_system_role_protected_without_users(self, registry, seeded):
        with pytest.raises(SystemRoleProtectedError):
            await registry.delete_role(seeded["CLIENTE"].id)

    @pytest.mark.asyncio
    async def test_system_role_protected_with_users(self, registry, seeded, admin_user):
        """The system-role check runs before the usage check"""
        admin_role_id = seeded["ADMIN"].id
        with pytest.raises(SystemRoleProtectedError):
            await registry.delete_role(admin_role_id)

    @pytest.mark.asyncio
    async def test_role_in_use_until_users_reassigned(self, registry, directory, seeded):
        editor = await registry.create_role("Editor")
        editor_id, cliente_id = editor.id, seeded["CLIENTE"].id
        await directory.create_user("Eva", "eva@pgdash.test", "password1", role_id=editor_id)
        await directory.create_user("Ivo", "ivo@pgdash.test", "password1", role_id=editor_id)

        with pytest.raises(RoleInUseError) as exc_info:
            await registry.delete_role(editor_id)
        assert exc_info.value.details["user_count"] == 2

        assert await directory.reassign_role(editor_id, cliente_id) == 2
        await registry.delete_role(editor_id)
        assert await registry.count_users(cliente_id) == 2


class TestAdminAliases:
    @pytest.mark.parametrize("name", ["ADMIN", "admin", "Administrador", "ADMINISTRADOR"])
    def test_aliases_canonicalise(self, name):
        assert canonical_role_name(name) == "ADMIN"

    def test_other_names_untouched(self):
        assert canonical_role_name("Editor") == "Editor"
        assert canonical_role_name(None) == ""

    def test_is_admin_role(self):
        assert is_admin_role(Role(name="Anything", implicit_superuser=True))
        assert not is_admin_role(Role(name="Administrador", implicit_superuser=False))
        assert not is_admin_role(Role(name="CLIENTE", implicit_superuser=False))
        assert not is_admin_role(None)
