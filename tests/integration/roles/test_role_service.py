"""Integration tests for RoleAdministrator called directly.

These tests verify:
- The service enforces its own permission checks
- A storage failure part way through an edit leaves the role intact
- Case sensitivity of role names follows the settings
- A lost race on the unique role name reads as a duplicate name
- Replacing permissions bumps the role's updated_at
"""

from datetime import datetime
from uuid import uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from keystone.config import settings
from keystone.core.errors import InternalError, PermissionDenied, ValidationError
from keystone.core.permissions.evaluator import PermissionSnapshot
from keystone.core.permissions.gateway import CompositionMode, PermissionContext
from keystone.core.permissions.models import Role
from keystone.core.permissions.store import PolicyStore
from keystone.modules.roles.schemas import RoleCreate, RoleUpdate
from keystone.modules.roles.services import RoleAdministrator, parse_permission_keys
from tests.helpers import admin_context


pytestmark = pytest.mark.integration


@pytest.fixture
def service(db: AsyncSession) -> RoleAdministrator:
    return RoleAdministrator(PolicyStore(db))


class TestParsePermissionKeys:
    """Tests for permission key parsing."""

    def test_deduplicates_in_order(self) -> None:
        assert parse_permission_keys(["jobs:view", "jobs:edit", "jobs:view"]) == [
            ("jobs", "view"),
            ("jobs", "edit"),
        ]

    def test_action_may_not_be_empty(self) -> None:
        with pytest.raises(ValidationError):
            parse_permission_keys(["jobs:"])


class TestServicePermissions:
    """The service checks the caller's context itself."""

    async def test_context_without_permission(self, service: RoleAdministrator, catalog) -> None:
        actor_id = uuid4()
        context = PermissionContext(
            actor_id=actor_id,
            mode=CompositionMode.SINGLE,
            checks=(("roles", "view"),),
            results={"roles:view": True},
            snapshot=PermissionSnapshot(actor_id=actor_id, grants=frozenset({("roles", "view")})),
        )

        with pytest.raises(PermissionDenied):
            await service.create_role(context, RoleCreate(name="Sneaky", permissions=["jobs:view"]))

    async def test_create_with_superadmin_context(self, service: RoleAdministrator, catalog) -> None:
        detail = await service.create_role(
            admin_context(), RoleCreate(name="Direct", permissions=["jobs:view"])
        )

        assert detail.permission_count == 1
        assert detail.actors == []


class TestAtomicity:
    """A failed edit is rolled back as a whole."""

    async def test_failure_after_delete_restores_grants(
        self, service: RoleAdministrator, make_role, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        role = await make_role(name="Fragile", permissions=["jobs:view", "jobs:edit"])
        role_id = role.id
        original = PolicyStore.replace_role_permissions

        async def failing(self, role_id, permissions):
            await original(self, role_id, [])
            raise OperationalError("INSERT", {}, Exception("connection lost"))

        monkeypatch.setattr(PolicyStore, "replace_role_permissions", failing)

        with pytest.raises(InternalError):
            await service.update_role(
                admin_context(),
                role_id,
                RoleUpdate(name="Renamed", permissions=["jobs:delete"]),
            )

        monkeypatch.setattr(PolicyStore, "replace_role_permissions", original)
        detail = await service.get_role(admin_context(), role_id)
        assert detail.name == "Fragile"
        assert {p.key for p in detail.permissions} == {"jobs:view", "jobs:edit"}


class TestRoleNames:
    """Tests for role name uniqueness."""

    async def test_case_sensitive_by_default(self, service: RoleAdministrator, make_role) -> None:
        await make_role(name="Recruiter", permissions=["jobs:view"])

        detail = await service.create_role(
            admin_context(), RoleCreate(name="recruiter", permissions=["jobs:view"])
        )

        assert detail.name == "recruiter"

    async def test_case_insensitive_setting(
        self, service: RoleAdministrator, make_role, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "role_name_case_sensitive", False)
        await make_role(name="Recruiter", permissions=["jobs:view"])

        with pytest.raises(ValidationError):
            await service.create_role(
                admin_context(), RoleCreate(name="RECRUITER", permissions=["jobs:view"])
            )

    async def test_name_is_trimmed(self, service: RoleAdministrator, catalog) -> None:
        detail = await service.create_role(
            admin_context(), RoleCreate(name="  Spaced  ", permissions=["jobs:view"])
        )

        assert detail.name == "Spaced"

    async def test_lost_name_race_is_a_validation_error(
        self, service: RoleAdministrator, make_role, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The unique constraint answers like the name check when both creates pass it."""
        await make_role(name="Recruiter", permissions=["jobs:view"])

        async def name_looks_free(self, name, exclude_id=None):
            return None

        monkeypatch.setattr(RoleAdministrator, "_ensure_name_available", name_looks_free)

        with pytest.raises(ValidationError) as exc_info:
            await service.create_role(
                admin_context(), RoleCreate(name="Recruiter", permissions=["jobs:edit"])
            )

        assert exc_info.value.message == "A role with this name already exists"
        roles = await service.list_roles(admin_context())
        assert [r.name for r in roles.roles].count("Recruiter") == 1


class TestTimestamps:
    """Tests for role timestamps."""

    async def test_permission_change_bumps_updated_at(
        self, db: AsyncSession, service: RoleAdministrator, make_role
    ) -> None:
        role = await make_role(name="Screener", permissions=["jobs:view"])
        role_id = role.id
        long_ago = datetime(2000, 1, 1)
        await db.execute(
            update(Role)
            .where(Role.id == role_id)
            .values(updated_at=long_ago)
            .execution_options(synchronize_session=False)
        )

        detail = await service.update_role(
            admin_context(),
            role_id,
            RoleUpdate(name="Screener", color=role.color, permissions=["jobs:view", "jobs:edit"]),
        )

        assert {p.key for p in detail.permissions} == {"jobs:view", "jobs:edit"}
        assert detail.updated_at.replace(tzinfo=None) > long_ago
