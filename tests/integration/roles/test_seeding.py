"""Integration tests for policy seeding."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from keystone.core.permissions.catalog import DEFAULT_CATALOG, SYSTEM_ROLES, CatalogEntry
from keystone.core.permissions.evaluator import PolicyEvaluator
from keystone.core.permissions.seeding import ensure_superadmin, seed_policy
from keystone.core.permissions.store import PolicyStore
from keystone.modules.actors.repos import ActorRepository


pytestmark = pytest.mark.integration


class TestSeedPolicy:
    """Tests for seed_policy."""

    async def test_first_run(self, db: AsyncSession) -> None:
        result = await seed_policy(db)

        assert result.permissions_created == len(DEFAULT_CATALOG)
        assert result.roles_created == len(SYSTEM_ROLES)

        roles = await PolicyStore(db).list_roles()
        assert {r.name for r in roles} == {d.name for d in SYSTEM_ROLES}
        assert all(r.is_system_role for r in roles)

    async def test_idempotent(self, db: AsyncSession) -> None:
        await seed_policy(db)

        result = await seed_policy(db)

        assert result.permissions_created == 0
        assert result.roles_created == 0
        assert result.roles_extended == 0

    async def test_new_catalog_entry_extends_system_role(self, db: AsyncSession) -> None:
        await seed_policy(db)
        extra = CatalogEntry("reports", "view", "View reports")
        catalog = (*DEFAULT_CATALOG, extra)
        administrator = next(d for d in SYSTEM_ROLES if d.name == "Administrator")
        extended = administrator.__class__(
            name=administrator.name,
            description=administrator.description,
            color=administrator.color,
            permissions=(*administrator.permissions, extra.key),
        )

        result = await seed_policy(db, catalog=catalog, system_roles=[extended])

        assert result.permissions_created == 1
        assert result.roles_extended == 1

    async def test_unknown_permission_in_system_role(self, db: AsyncSession) -> None:
        broken = SYSTEM_ROLES[0].__class__(
            name="Broken", description="", color="red", permissions=("jobs:teleport",)
        )

        with pytest.raises(ValueError):
            await seed_policy(db, system_roles=[broken])


class TestEnsureSuperadmin:
    """Tests for ensure_superadmin."""

    async def test_creates_once(self, db: AsyncSession) -> None:
        await seed_policy(db)

        assert await ensure_superadmin(db, "root@example.com") is True
        assert await ensure_superadmin(db, "root@example.com") is False

        actor = await ActorRepository(db).get_by_email("root@example.com")
        evaluator = PolicyEvaluator(PolicyStore(db))
        assert await evaluator.has_permission(actor.id, "roles", "delete")
