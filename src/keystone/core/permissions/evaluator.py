"""Permission evaluation.

This module decides whether an actor holds a permission. Every call
reads the policy store afresh; nothing is cached between calls, so a
role edit is visible to the very next check.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends

from keystone.core.permissions.models import permission_key
from keystone.core.permissions.store import PolicyStoreDep


logger = structlog.get_logger()


@dataclass(frozen=True)
class PermissionSnapshot:
    """An actor's effective permissions as of one read.

    An unknown or inactive actor yields an empty snapshot that denies
    everything.
    """

    actor_id: UUID
    is_superadmin: bool = False
    grants: frozenset[tuple[str, str]] = field(default_factory=frozenset)

    def allows(self, resource: str, action: str) -> bool:
        """Check one ``(resource, action)`` pair against this snapshot."""
        if self.is_superadmin:
            return True
        return (resource, action) in self.grants

    def allows_any_on(self, resource: str) -> bool:
        """Whether any action on ``resource`` is granted."""
        if self.is_superadmin:
            return True
        return any(granted == resource for granted, _ in self.grants)

    def check_all(self, checks: Iterable[tuple[str, str]]) -> dict[str, bool]:
        """Evaluate several pairs, keyed by 'resource:action'."""
        return {
            permission_key(resource, action): self.allows(resource, action)
            for resource, action in checks
        }

    @property
    def keys(self) -> set[str]:
        """The granted pairs as 'resource:action' keys."""
        return {permission_key(resource, action) for resource, action in self.grants}


class PolicyEvaluator:
    """Service for checking actor permissions.

    Evaluates whether an actor has specific permissions based on the
    union of the grants of their active roles, or the superadmin
    override.
    """

    def __init__(self, store: PolicyStoreDep) -> None:
        self.store = store

    async def snapshot(self, actor_id: UUID) -> PermissionSnapshot:
        """Read the actor's effective permissions in one consistent read.

        Args:
            actor_id: The actor's UUID

        Returns:
            The actor's snapshot; empty for unknown or inactive actors
        """
        grants = await self.store.load_actor_grants(actor_id)

        if not grants.found or not grants.is_active:
            logger.debug(
                "permission_snapshot_empty",
                actor_id=str(actor_id),
                reason="unknown_actor" if not grants.found else "inactive_actor",
            )
            return PermissionSnapshot(actor_id=actor_id)

        return PermissionSnapshot(
            actor_id=actor_id,
            is_superadmin=grants.is_superadmin,
            grants=grants.grants,
        )

    async def has_permission(self, actor_id: UUID, resource: str, action: str) -> bool:
        """Check if an actor has a specific permission.

        Args:
            actor_id: The actor's UUID
            resource: The resource to check (e.g., "jobs")
            action: The action to check (e.g., "view", "edit", "delete")

        Returns:
            True if the actor has the permission, False otherwise
        """
        snapshot = await self.snapshot(actor_id)
        allowed = snapshot.allows(resource, action)
        if allowed and snapshot.is_superadmin:
            logger.warning(
                "superadmin_bypass",
                actor_id=str(actor_id),
                permissions=[permission_key(resource, action)],
            )
        return allowed

    async def has_permissions(
        self,
        actor_id: UUID,
        checks: Iterable[tuple[str, str]],
    ) -> dict[str, bool]:
        """Check several permissions against one read of the actor's roles.

        Args:
            actor_id: The actor's UUID
            checks: (resource, action) tuples to check

        Returns:
            Mapping of 'resource:action' to the decision for that pair
        """
        checks = list(checks)
        snapshot = await self.snapshot(actor_id)
        if snapshot.is_superadmin:
            logger.warning(
                "superadmin_bypass",
                actor_id=str(actor_id),
                permissions=[permission_key(r, a) for r, a in checks],
            )
        return snapshot.check_all(checks)

    async def has_any_permission_for_resource(self, actor_id: UUID, resource: str) -> bool:
        """Check if an actor may do anything at all with a resource.

        Used to decide whether a whole section (a menu entry, a page)
        is shown to the actor.
        """
        snapshot = await self.snapshot(actor_id)
        return snapshot.allows_any_on(resource)

    async def get_permission_set(self, actor_id: UUID) -> set[str]:
        """Get all permissions of an actor.

        A superadmin holds every permission of the catalog.

        Args:
            actor_id: The actor's UUID

        Returns:
            Set of permission strings in "resource:action" format
        """
        snapshot = await self.snapshot(actor_id)
        if snapshot.is_superadmin:
            return set(await self.store.catalog_keys())
        return snapshot.keys


# Type alias for dependency injection
Evaluator = Annotated[PolicyEvaluator, Depends(PolicyEvaluator)]
