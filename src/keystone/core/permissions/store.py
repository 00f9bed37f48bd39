"""Policy store - durable storage of the authorization data.

All reads and writes of the permission catalog, roles, role grants and
actor-role assignments go through ``PolicyStore``. It never commits;
the caller owns the transaction.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy import and_, delete, func, or_, select, update

from keystone.api.dependencies import DBSession
from keystone.core.permissions.catalog import CatalogEntry
from keystone.core.permissions.models import (
    Permission,
    Role,
    RolePermission,
    UserRoleAssignment,
    permission_key,
)
from keystone.modules.actors.models import Actor


@dataclass(frozen=True)
class GrantRow:
    """One row of the actor grant read."""

    is_active: bool
    is_superadmin: bool
    resource: str | None
    action: str | None


@dataclass(frozen=True)
class ActorGrants:
    """Everything the evaluator needs about one actor, read in one statement."""

    actor_id: UUID
    found: bool = False
    is_active: bool = False
    is_superadmin: bool = False
    grants: frozenset[tuple[str, str]] = field(default_factory=frozenset)


class PolicyStore:
    """Repository for permissions, roles, grants and assignments."""

    def __init__(self, session: DBSession) -> None:
        self.session = session

    # ------------------------------------------------------------
    # Permission catalog
    # ------------------------------------------------------------

    async def list_permissions(self) -> list[Permission]:
        """List the whole catalog ordered by resource then action."""
        stmt = select(Permission).order_by(Permission.resource, Permission.action)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def resolve_permissions(
        self, pairs: Iterable[tuple[str, str]]
    ) -> tuple[list[Permission], list[tuple[str, str]]]:
        """Resolve ``(resource, action)`` pairs against the catalog.

        Args:
            pairs: Pairs to look up; duplicates are ignored

        Returns:
            Tuple of (resolved permissions, pairs not in the catalog)
        """
        wanted = set(pairs)
        if not wanted:
            return [], []

        stmt = select(Permission).where(
            or_(
                *(
                    and_(Permission.resource == resource, Permission.action == action)
                    for resource, action in wanted
                )
            )
        )
        result = await self.session.execute(stmt)
        found = list(result.scalars().all())

        known = {(p.resource, p.action) for p in found}
        missing = sorted(wanted - known)
        return found, missing

    async def ensure_catalog(self, entries: Iterable[CatalogEntry]) -> int:
        """Insert catalog entries that do not exist yet.

        Existing entries are left untouched.

        Returns:
            Number of permissions created
        """
        existing = {(p.resource, p.action) for p in await self.list_permissions()}
        created = 0
        for entry in entries:
            if (entry.resource, entry.action) in existing:
                continue
            self.session.add(
                Permission(
                    resource=entry.resource,
                    action=entry.action,
                    description=entry.description or None,
                )
            )
            existing.add((entry.resource, entry.action))
            created += 1
        await self.session.flush()
        return created

    # ------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------

    async def get_role(self, role_id: UUID, *, for_update: bool = False) -> Role | None:
        """Get a role with its permissions, always reloaded from the database.

        Args:
            role_id: The role's UUID
            for_update: Lock the role row until the transaction ends

        Returns:
            Role if found, None otherwise
        """
        stmt = (
            select(Role)
            .where(Role.id == role_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_roles(self) -> list[Role]:
        """List roles, system roles first, then by name."""
        stmt = (
            select(Role)
            .order_by(Role.is_system_role.desc(), Role.name)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_role_by_name(
        self,
        name: str,
        *,
        exclude_id: UUID | None = None,
        case_sensitive: bool = True,
    ) -> Role | None:
        """Find a role by name.

        Args:
            name: Role name to look for
            exclude_id: Ignore this role (used when renaming)
            case_sensitive: Compare names exactly or case-insensitively

        Returns:
            The first matching role, or None
        """
        if case_sensitive:
            condition = Role.name == name
        else:
            condition = func.lower(Role.name) == name.lower()

        stmt = select(Role).where(condition)
        if exclude_id is not None:
            stmt = stmt.where(Role.id != exclude_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def add_role(self, role: Role) -> Role:
        """Insert a new role row."""
        self.session.add(role)
        await self.session.flush()
        return role

    async def replace_role_permissions(
        self, role_id: UUID, permissions: Iterable[Permission]
    ) -> None:
        """Replace the whole grant set of a role.

        Deletes every existing grant of the role, then inserts the new
        set. Must run inside a transaction so no partial set is ever
        visible. The role's ``updated_at`` is bumped as well.
        """
        await self.session.execute(
            update(Role)
            .where(Role.id == role_id)
            .values(updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(
            delete(RolePermission).where(RolePermission.role_id == role_id)
        )
        permission_ids = {permission.id for permission in permissions}
        self.session.add_all(
            RolePermission(role_id=role_id, permission_id=permission_id)
            for permission_id in permission_ids
        )
        await self.session.flush()

    async def delete_role(self, role_id: UUID) -> None:
        """Delete a role's grants, then the role row itself."""
        await self.session.execute(
            delete(RolePermission).where(RolePermission.role_id == role_id)
        )
        await self.session.execute(delete(Role).where(Role.id == role_id))
        await self.session.flush()

    async def permission_counts(self) -> dict[UUID, int]:
        """Count grant rows per role in one query."""
        stmt = select(RolePermission.role_id, func.count()).group_by(RolePermission.role_id)
        result = await self.session.execute(stmt)
        return {role_id: count for role_id, count in result.all()}

    async def granted_permission_ids(self) -> set[UUID]:
        """Return the IDs of permissions granted to at least one role."""
        result = await self.session.execute(select(RolePermission.permission_id).distinct())
        return set(result.scalars().all())

    # ------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------

    async def count_role_assignments(self, role_id: UUID) -> int:
        """Count the actors assigned to a role."""
        stmt = (
            select(func.count())
            .select_from(UserRoleAssignment)
            .where(UserRoleAssignment.role_id == role_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def assignment_counts(self) -> dict[UUID, int]:
        """Count assigned actors per role in one query."""
        stmt = select(UserRoleAssignment.role_id, func.count()).group_by(
            UserRoleAssignment.role_id
        )
        result = await self.session.execute(stmt)
        return {role_id: count for role_id, count in result.all()}

    async def assigned_actor_ids(self) -> set[UUID]:
        """Return the IDs of actors holding at least one role."""
        result = await self.session.execute(select(UserRoleAssignment.user_id).distinct())
        return set(result.scalars().all())

    async def list_role_actors(self, role_id: UUID) -> list[Actor]:
        """List the actors assigned to a role, ordered by name."""
        stmt = (
            select(Actor)
            .join(UserRoleAssignment, UserRoleAssignment.user_id == Actor.id)
            .where(UserRoleAssignment.role_id == role_id)
            .order_by(Actor.full_name, Actor.email)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_assignment(self, role_id: UUID, actor_id: UUID) -> UserRoleAssignment | None:
        """Get one actor-role assignment."""
        stmt = select(UserRoleAssignment).where(
            UserRoleAssignment.role_id == role_id,
            UserRoleAssignment.user_id == actor_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_assignment(self, role_id: UUID, actor_id: UUID) -> None:
        """Assign an actor to a role."""
        self.session.add(UserRoleAssignment(user_id=actor_id, role_id=role_id))
        await self.session.flush()

    async def remove_assignment(self, role_id: UUID, actor_id: UUID) -> int:
        """Remove an actor from a role.

        Returns:
            Number of assignments removed (0 or 1)
        """
        result = await self.session.execute(
            delete(UserRoleAssignment).where(
                UserRoleAssignment.role_id == role_id,
                UserRoleAssignment.user_id == actor_id,
            )
        )
        await self.session.flush()
        return result.rowcount or 0

    # ------------------------------------------------------------
    # Actors
    # ------------------------------------------------------------

    async def get_actor(self, actor_id: UUID) -> Actor | None:
        """Get an actor by ID."""
        result = await self.session.execute(select(Actor).where(Actor.id == actor_id))
        return result.scalar_one_or_none()

    async def list_actors(self) -> list[Actor]:
        """List every actor ordered by name then email."""
        result = await self.session.execute(select(Actor).order_by(Actor.full_name, Actor.email))
        return list(result.scalars().all())

    async def load_actor_grants(self, actor_id: UUID) -> ActorGrants:
        """Read an actor's flags and the grants of their active roles.

        One SQL statement walks actor -> assignments -> active roles ->
        grants -> catalog, so the result is a single consistent read
        even while roles are being edited concurrently.

        Args:
            actor_id: The actor's UUID

        Returns:
            ActorGrants; ``found`` is False for an unknown actor
        """
        stmt = (
            select(
                Actor.is_active,
                Actor.is_superadmin,
                Permission.resource,
                Permission.action,
            )
            .select_from(Actor)
            .outerjoin(UserRoleAssignment, UserRoleAssignment.user_id == Actor.id)
            .outerjoin(
                Role,
                and_(
                    Role.id == UserRoleAssignment.role_id,
                    Role.is_active.is_(True),
                ),
            )
            .outerjoin(RolePermission, RolePermission.role_id == Role.id)
            .outerjoin(Permission, Permission.id == RolePermission.permission_id)
            .where(Actor.id == actor_id)
        )
        result = await self.session.execute(stmt)
        rows = [GrantRow(*row) for row in result.all()]

        if not rows:
            return ActorGrants(actor_id=actor_id)

        grants = frozenset(
            (row.resource, row.action)
            for row in rows
            if row.resource is not None and row.action is not None
        )
        return ActorGrants(
            actor_id=actor_id,
            found=True,
            is_active=rows[0].is_active,
            is_superadmin=rows[0].is_superadmin,
            grants=grants,
        )

    async def catalog_keys(self) -> frozenset[str]:
        """Return every catalog permission as a 'resource:action' key."""
        result = await self.session.execute(select(Permission.resource, Permission.action))
        return frozenset(permission_key(resource, action) for resource, action in result.all())


# Type alias for dependency injection
PolicyStoreDep = Annotated[PolicyStore, Depends(PolicyStore)]
