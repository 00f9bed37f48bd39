"""Permission catalog API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends

from keystone.core.auth import OptionalActor
from keystone.core.errors import AuthenticationRequired
from keystone.core.permissions import (
    Evaluator,
    PermissionContext,
    evaluation_deadline,
    require_permission,
)
from keystone.modules.roles.schemas import ActorPermissions, PermissionCatalog
from keystone.modules.roles.services import RoleAdmin


router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get(
    "",
    response_model=PermissionCatalog,
    summary="List permissions",
    description="The permission catalog grouped by resource.",
)
async def list_permissions(
    service: RoleAdmin,
    context: Annotated[PermissionContext, Depends(require_permission("roles", "view"))],
) -> PermissionCatalog:
    """List the permission catalog."""
    return await service.list_permissions(context)


@router.get(
    "/me",
    response_model=ActorPermissions,
    summary="My permissions",
    description="The effective permissions of the calling actor.",
)
async def my_permissions(actor: OptionalActor, evaluator: Evaluator) -> ActorPermissions:
    """Get the caller's own permission set."""
    if actor is None:
        raise AuthenticationRequired()

    async with evaluation_deadline(actor.id):
        permissions = await evaluator.get_permission_set(actor.id)
    return ActorPermissions(
        actor_id=actor.id,
        is_superadmin=actor.is_superadmin,
        permissions=sorted(permissions),
    )
