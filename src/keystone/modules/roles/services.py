"""Role administration.

Every operation takes the caller's ``PermissionContext`` and checks the
permission it needs against it, so the service enforces its own access
rules whether it is reached through HTTP or called directly.
"""

from collections.abc import Iterable
from itertools import groupby
from operator import attrgetter
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from keystone.config import settings
from keystone.core.constants import DEFAULT_ROLE_COLOR, PERMISSION_KEY_SEPARATOR
from keystone.core.database import atomic
from keystone.core.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from keystone.core.permissions.gateway import PermissionContext
from keystone.core.permissions.models import Permission, Role
from keystone.core.permissions.store import PolicyStoreDep
from keystone.modules.roles.schemas import (
    ActorSummary,
    PermissionCatalog,
    PermissionGroup,
    PermissionResponse,
    RoleActors,
    RoleCreate,
    RoleDetail,
    RoleList,
    RoleResponse,
    RoleUpdate,
)


logger = structlog.get_logger()


def parse_permission_keys(keys: Iterable[str]) -> list[tuple[str, str]]:
    """Split "resource:action" keys into pairs.

    Raises:
        ValidationError: If the list is empty or a key is malformed
    """
    pairs: list[tuple[str, str]] = []
    malformed: list[str] = []

    for key in keys:
        resource, sep, action = key.strip().partition(PERMISSION_KEY_SEPARATOR)
        if not sep or not resource or not action:
            malformed.append(key)
            continue
        pairs.append((resource, action))

    if malformed:
        raise ValidationError(
            "Some permissions are invalid",
            errors=[
                {"field": "permissions", "message": f"Malformed permission key: {key!r}"}
                for key in malformed
            ],
        )

    if not pairs:
        raise ValidationError(
            "At least one permission is required",
            errors=[{"field": "permissions", "message": "At least one permission is required"}],
        )

    return list(dict.fromkeys(pairs))


def _clean_name(name: str) -> str:
    cleaned = name.strip()
    if not cleaned:
        raise ValidationError(
            "Role name is required",
            errors=[{"field": "name", "message": "Role name is required"}],
        )
    return cleaned


def _name_taken(name: str) -> ValidationError:
    return ValidationError(
        "A role with this name already exists",
        errors=[{"field": "name", "message": f"Role '{name}' already exists"}],
    )


def _clean_description(description: str | None) -> str | None:
    if description is None:
        return None
    return description.strip() or None


class RoleAdministrator:
    """Service for role and grant management.

    Mutations run inside a savepoint of the request transaction: a
    failure part way through leaves the role exactly as it was.
    """

    def __init__(self, store: PolicyStoreDep) -> None:
        self.store = store

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------

    async def list_roles(self, context: PermissionContext) -> RoleList:
        """List roles with their permission and actor counts."""
        context.require("roles", "view")

        roles = await self.store.list_roles()
        permission_counts = await self.store.permission_counts()
        actor_counts = await self.store.assignment_counts()

        items = [
            self._role_response(
                role,
                permission_count=permission_counts.get(role.id, 0),
                actor_count=actor_counts.get(role.id, 0),
            )
            for role in roles
        ]
        return RoleList(roles=items, total=len(items))

    async def get_role(self, context: PermissionContext, role_id: UUID) -> RoleDetail:
        """Get a role with its permissions, assigned actors and counts.

        Raises:
            NotFoundError: If the role does not exist
        """
        context.require("roles", "view")
        return await self._role_detail(await self._get_role_or_404(role_id))

    async def list_role_actors(self, context: PermissionContext, role_id: UUID) -> RoleActors:
        """Split every actor into assigned to the role and available."""
        context.require("roles", "view")
        context.require("users", "view")

        role = await self._get_role_or_404(role_id)
        assigned = await self.store.list_role_actors(role.id)
        assigned_ids = {actor.id for actor in assigned}
        available = [a for a in await self.store.list_actors() if a.id not in assigned_ids]

        return RoleActors(
            role=self._role_response(
                role,
                permission_count=len(role.permissions),
                actor_count=len(assigned),
            ),
            assigned=[ActorSummary.model_validate(a) for a in assigned],
            available=[ActorSummary.model_validate(a) for a in available],
        )

    async def list_permissions(self, context: PermissionContext) -> PermissionCatalog:
        """Return the permission catalog grouped by resource."""
        context.require("roles", "view")

        permissions = await self.store.list_permissions()
        groups = [
            PermissionGroup(
                resource=resource,
                permissions=[PermissionResponse.model_validate(p) for p in group],
            )
            for resource, group in groupby(permissions, key=attrgetter("resource"))
        ]
        return PermissionCatalog(resources=groups, total=len(permissions))

    # ------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------

    async def create_role(self, context: PermissionContext, data: RoleCreate) -> RoleDetail:
        """Create a role together with its permission set.

        Raises:
            ValidationError: Empty name, duplicate name, or an empty or
                unresolvable permission set
        """
        context.require("roles", "create")

        name = _clean_name(data.name)
        pairs = parse_permission_keys(data.permissions)

        try:
            async with atomic(self.store.session):
                await self._ensure_name_available(name)
                permissions = await self._resolve(pairs)

                role = await self.store.add_role(
                    Role(
                        name=name,
                        description=_clean_description(data.description),
                        color=data.color or DEFAULT_ROLE_COLOR,
                        is_active=data.is_active,
                        is_system_role=False,
                    )
                )
                await self.store.replace_role_permissions(role.id, permissions)
        except IntegrityError as exc:
            # Lost a race with a concurrent create of the same name
            logger.warning("role_name_conflict", name=name)
            raise _name_taken(name) from exc
        except SQLAlchemyError as exc:
            logger.error("role_create_failed", name=name, error=str(exc))
            raise InternalError("Failed to create role") from exc

        logger.info(
            "role_created",
            role_id=str(role.id),
            name=name,
            permission_count=len(permissions),
            actor_id=str(context.actor_id),
        )
        return await self._role_detail(await self._get_role_or_404(role.id))

    async def update_role(
        self, context: PermissionContext, role_id: UUID, data: RoleUpdate
    ) -> RoleDetail:
        """Replace a role's fields and its whole permission set.

        The role row is locked first, so two edits of the same role
        apply one after the other and the later one wins as a whole.

        Raises:
            NotFoundError: If the role does not exist
            ValidationError: Empty or duplicate name, a system role
                rename, or an empty or unresolvable permission set
        """
        context.require("roles", "edit")

        name = _clean_name(data.name)
        pairs = parse_permission_keys(data.permissions)

        try:
            async with atomic(self.store.session):
                role = await self._get_role_or_404(role_id, for_update=True)

                if name != role.name:
                    if role.is_system_role:
                        raise ValidationError(
                            "System role names cannot be changed",
                            errors=[{"field": "name", "message": "System role names cannot be changed"}],
                        )
                    await self._ensure_name_available(name, exclude_id=role.id)

                permissions = await self._resolve(pairs)

                role.name = name
                role.description = _clean_description(data.description)
                role.color = data.color or DEFAULT_ROLE_COLOR
                role.is_active = data.is_active
                await self.store.replace_role_permissions(role.id, permissions)
        except IntegrityError as exc:
            logger.warning("role_name_conflict", name=name, role_id=str(role_id))
            raise _name_taken(name) from exc
        except SQLAlchemyError as exc:
            logger.error("role_update_failed", role_id=str(role_id), error=str(exc))
            raise InternalError("Failed to update role") from exc

        logger.info(
            "role_updated",
            role_id=str(role_id),
            name=name,
            permission_count=len(permissions),
            actor_id=str(context.actor_id),
        )
        return await self._role_detail(await self._get_role_or_404(role_id))

    async def delete_role(self, context: PermissionContext, role_id: UUID) -> None:
        """Delete a role and its grants.

        Raises:
            NotFoundError: If the role does not exist
            ConflictError: For system roles, and for roles still
                assigned to actors (details carry the count)
        """
        context.require("roles", "delete")

        try:
            async with atomic(self.store.session):
                role = await self._get_role_or_404(role_id, for_update=True)

                if role.is_system_role:
                    raise ConflictError(
                        "System roles cannot be deleted",
                        error_code="system_role",
                        details={"role_id": str(role.id)},
                    )

                assigned = await self.store.count_role_assignments(role.id)
                if assigned > 0:
                    noun = "actor is" if assigned == 1 else "actors are"
                    raise ConflictError(
                        f"Cannot delete role. {assigned} {noun} currently assigned "
                        "to this role. Reassign them to another role first.",
                        error_code="role_in_use",
                        details={"assigned_actors": assigned},
                    )

                await self.store.delete_role(role.id)
        except SQLAlchemyError as exc:
            logger.error("role_delete_failed", role_id=str(role_id), error=str(exc))
            raise InternalError("Failed to delete role") from exc

        logger.info("role_deleted", role_id=str(role_id), actor_id=str(context.actor_id))

    async def assign_actor(
        self, context: PermissionContext, role_id: UUID, actor_id: UUID
    ) -> RoleDetail:
        """Assign an actor to a role.

        Raises:
            NotFoundError: If the role or the actor does not exist
            ValidationError: If the role is inactive
            ConflictError: If the actor already holds the role
        """
        context.require("roles", "assign")

        try:
            async with atomic(self.store.session):
                role = await self._get_role_or_404(role_id)
                await self._get_actor_or_404(actor_id)

                if not role.is_active:
                    raise ValidationError("Cannot assign actors to an inactive role")

                if await self.store.get_assignment(role.id, actor_id):
                    raise ConflictError(
                        "Actor already has this role",
                        error_code="already_assigned",
                        details={"role_id": str(role.id), "assignee_id": str(actor_id)},
                    )

                await self.store.add_assignment(role.id, actor_id)
        except SQLAlchemyError as exc:
            logger.error("role_assign_failed", role_id=str(role_id), error=str(exc))
            raise InternalError("Failed to assign role") from exc

        logger.info(
            "role_actor_assigned",
            role_id=str(role_id),
            assignee_id=str(actor_id),
            actor_id=str(context.actor_id),
        )
        return await self._role_detail(role)

    async def unassign_actor(
        self, context: PermissionContext, role_id: UUID, actor_id: UUID
    ) -> None:
        """Remove an actor from a role.

        Raises:
            NotFoundError: If the role does not exist or the actor does
                not hold it
        """
        context.require("roles", "assign")

        try:
            async with atomic(self.store.session):
                role = await self._get_role_or_404(role_id)
                removed = await self.store.remove_assignment(role.id, actor_id)
        except SQLAlchemyError as exc:
            logger.error("role_unassign_failed", role_id=str(role_id), error=str(exc))
            raise InternalError("Failed to remove role assignment") from exc

        if not removed:
            raise NotFoundError(
                "Actor does not have this role",
                resource="assignment",
                resource_id=str(actor_id),
            )

        logger.info(
            "role_actor_unassigned",
            role_id=str(role_id),
            assignee_id=str(actor_id),
            actor_id=str(context.actor_id),
        )

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    async def _get_role_or_404(self, role_id: UUID, *, for_update: bool = False) -> Role:
        role = await self.store.get_role(role_id, for_update=for_update)
        if not role:
            raise NotFoundError("Role not found", resource="role", resource_id=str(role_id))
        return role

    async def _get_actor_or_404(self, actor_id: UUID) -> None:
        if not await self.store.get_actor(actor_id):
            raise NotFoundError("Actor not found", resource="actor", resource_id=str(actor_id))

    async def _ensure_name_available(self, name: str, exclude_id: UUID | None = None) -> None:
        existing = await self.store.find_role_by_name(
            name,
            exclude_id=exclude_id,
            case_sensitive=settings.role_name_case_sensitive,
        )
        if existing:
            raise _name_taken(name)

    async def _resolve(self, pairs: list[tuple[str, str]]) -> list[Permission]:
        permissions, missing = await self.store.resolve_permissions(pairs)
        if missing:
            raise ValidationError(
                "Some permissions are invalid",
                errors=[
                    {"field": "permissions", "message": f"Unknown permission {r}:{a}"}
                    for r, a in missing
                ],
            )
        return permissions

    async def _role_detail(self, role: Role) -> RoleDetail:
        actors = await self.store.list_role_actors(role.id)
        return RoleDetail(
            **self._role_response(
                role,
                permission_count=len(role.permissions),
                actor_count=len(actors),
            ).model_dump(),
            permissions=[PermissionResponse.model_validate(p) for p in role.permissions],
            actors=[ActorSummary.model_validate(a) for a in actors],
        )

    @staticmethod
    def _role_response(role: Role, *, permission_count: int, actor_count: int) -> RoleResponse:
        return RoleResponse(
            id=role.id,
            name=role.name,
            description=role.description,
            color=role.color,
            is_active=role.is_active,
            is_system_role=role.is_system_role,
            created_at=role.created_at,
            updated_at=role.updated_at,
            permission_count=permission_count,
            actor_count=actor_count,
        )


# Type alias for dependency injection
RoleAdmin = Annotated[RoleAdministrator, Depends(RoleAdministrator)]
