"""Role management API routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from keystone.core.permissions import (
    PermissionContext,
    require_all_permissions,
    require_permission,
)
from keystone.modules.roles.schemas import (
    RoleActors,
    RoleCreate,
    RoleDetail,
    RoleList,
    RoleUpdate,
)
from keystone.modules.roles.services import RoleAdmin


router = APIRouter(prefix="/roles", tags=["roles"])


# ============================================================
# Roles
# ============================================================


@router.get(
    "",
    response_model=RoleList,
    summary="List roles",
    description="List all roles, system roles first, with permission and actor counts.",
)
async def list_roles(
    service: RoleAdmin,
    context: Annotated[PermissionContext, Depends(require_permission("roles", "view"))],
) -> RoleList:
    """List all roles."""
    return await service.list_roles(context)


@router.post(
    "",
    response_model=RoleDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create role",
    description="Create a role with its complete permission set.",
)
async def create_role(
    data: RoleCreate,
    service: RoleAdmin,
    context: Annotated[PermissionContext, Depends(require_permission("roles", "create"))],
) -> RoleDetail:
    """Create a new role."""
    return await service.create_role(context, data)


@router.get(
    "/{role_id}",
    response_model=RoleDetail,
    summary="Get role",
    description="Get a role with its permissions, assigned actors and counts.",
)
async def get_role(
    role_id: UUID,
    service: RoleAdmin,
    context: Annotated[PermissionContext, Depends(require_permission("roles", "view"))],
) -> RoleDetail:
    """Get a role by ID."""
    return await service.get_role(context, role_id)


@router.put(
    "/{role_id}",
    response_model=RoleDetail,
    summary="Replace role",
    description=(
        "Replace a role's fields and its whole permission set. "
        "Permissions not listed are revoked."
    ),
)
async def update_role(
    role_id: UUID,
    data: RoleUpdate,
    service: RoleAdmin,
    context: Annotated[PermissionContext, Depends(require_permission("roles", "edit"))],
) -> RoleDetail:
    """Replace a role."""
    return await service.update_role(context, role_id, data)


@router.delete(
    "/{role_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete role",
    description="Delete a role. System roles and roles assigned to actors cannot be deleted.",
)
async def delete_role(
    role_id: UUID,
    service: RoleAdmin,
    context: Annotated[PermissionContext, Depends(require_permission("roles", "delete"))],
) -> None:
    """Delete a role."""
    await service.delete_role(context, role_id)


# ============================================================
# Assignments
# ============================================================


@router.get(
    "/{role_id}/actors",
    response_model=RoleActors,
    summary="List role actors",
    description="List the actors assigned to a role and the ones available for assignment.",
)
async def list_role_actors(
    role_id: UUID,
    service: RoleAdmin,
    context: Annotated[
        PermissionContext,
        Depends(require_all_permissions([("roles", "view"), ("users", "view")])),
    ],
) -> RoleActors:
    """List assigned and available actors for a role."""
    return await service.list_role_actors(context, role_id)


@router.post(
    "/{role_id}/actors/{actor_id}",
    response_model=RoleDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Assign role",
    description="Assign an actor to an active role.",
)
async def assign_actor(
    role_id: UUID,
    actor_id: UUID,
    service: RoleAdmin,
    context: Annotated[PermissionContext, Depends(require_permission("roles", "assign"))],
) -> RoleDetail:
    """Assign an actor to a role."""
    return await service.assign_actor(context, role_id, actor_id)


@router.delete(
    "/{role_id}/actors/{actor_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unassign role",
    description="Remove an actor from a role.",
)
async def unassign_actor(
    role_id: UUID,
    actor_id: UUID,
    service: RoleAdmin,
    context: Annotated[PermissionContext, Depends(require_permission("roles", "assign"))],
) -> None:
    """Remove an actor from a role."""
    await service.unassign_actor(context, role_id, actor_id)
