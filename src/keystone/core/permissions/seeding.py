"""Idempotent seeding of the permission catalog and system roles.

Safe to run on every deploy: existing permissions and roles are left
alone, except that system roles receive catalog permissions added
since they were created.
"""

from collections.abc import Iterable
from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from keystone.core.constants import LEGACY_PRIVILEGE_SUPER_ADMIN
from keystone.core.database import atomic
from keystone.core.permissions.catalog import (
    DEFAULT_CATALOG,
    SYSTEM_ROLES,
    CatalogEntry,
    SystemRoleDefinition,
)
from keystone.core.permissions.models import Role
from keystone.core.permissions.store import PolicyStore
from keystone.modules.actors.models import Actor
from keystone.modules.actors.repos import ActorRepository


logger = structlog.get_logger()


@dataclass
class SeedResult:
    """What a seeding run changed."""

    permissions_created: int = 0
    roles_created: int = 0
    roles_extended: int = 0


async def seed_policy(
    session: AsyncSession,
    catalog: Iterable[CatalogEntry] = DEFAULT_CATALOG,
    system_roles: Iterable[SystemRoleDefinition] = SYSTEM_ROLES,
) -> SeedResult:
    """Create missing catalog permissions and system roles.

    Args:
        session: Database session; the caller commits
        catalog: Permission catalog to install
        system_roles: System roles to create

    Returns:
        Counts of what was created
    """
    store = PolicyStore(session)
    result = SeedResult()

    async with atomic(session):
        result.permissions_created = await store.ensure_catalog(catalog)

        for definition in system_roles:
            pairs = [tuple(key.split(":", 1)) for key in definition.permissions]
            permissions, missing = await store.resolve_permissions(pairs)
            if missing:
                raise ValueError(
                    f"System role '{definition.name}' references unknown permissions: "
                    + ", ".join(f"{r}:{a}" for r, a in missing)
                )

            role = await store.find_role_by_name(definition.name)
            if role is None:
                role = await store.add_role(
                    Role(
                        name=definition.name,
                        description=definition.description,
                        color=definition.color,
                        is_active=True,
                        is_system_role=True,
                    )
                )
                await store.replace_role_permissions(role.id, permissions)
                result.roles_created += 1
                logger.info("system_role_created", name=definition.name)
                continue

            role = await store.get_role(role.id)
            if role is not None and role.is_system_role:
                granted = {p.id for p in role.permissions}
                if not {p.id for p in permissions} <= granted:
                    await store.replace_role_permissions(
                        role.id, [*role.permissions, *permissions]
                    )
                    result.roles_extended += 1
                    logger.info("system_role_extended", name=definition.name)

    return result


async def ensure_superadmin(
    session: AsyncSession,
    email: str,
    full_name: str = "Superadmin",
) -> bool:
    """Create a superadmin actor unless the email is already taken.

    Returns:
        True if a new actor was created
    """
    if await ActorRepository(session).get_by_email(email):
        return False

    session.add(
        Actor(
            email=email,
            full_name=full_name,
            is_active=True,
            is_superadmin=True,
            privilege_level=LEGACY_PRIVILEGE_SUPER_ADMIN,
        )
    )
    await session.flush()
    logger.warning("superadmin_created", email=email)
    return True
