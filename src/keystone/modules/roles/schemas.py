"""Pydantic schemas for role management."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from keystone.core.constants import (
    MAX_DESCRIPTION_LENGTH,
    MAX_ROLE_COLOR_LENGTH,
    MAX_ROLE_NAME_LENGTH,
)


# ============================================================
# Requests
# ============================================================


class RoleWrite(BaseModel):
    """Fields submitted when creating or replacing a role.

    ``permissions`` is the complete set of "resource:action" keys the
    role should hold afterwards; it is never merged with the old set.
    """

    name: str = Field(..., max_length=MAX_ROLE_NAME_LENGTH)
    description: str | None = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    color: str | None = Field(default=None, max_length=MAX_ROLE_COLOR_LENGTH)
    is_active: bool = True
    permissions: list[str] = Field(default_factory=list)


class RoleCreate(RoleWrite):
    """Schema for creating a role."""


class RoleUpdate(RoleWrite):
    """Schema for replacing a role's fields and permission set."""


# ============================================================
# Responses
# ============================================================


class PermissionResponse(BaseModel):
    """Schema for a catalog permission."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    resource: str
    action: str
    key: str
    description: str | None = None


class ActorSummary(BaseModel):
    """Schema for an actor listed against a role."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str | None = None
    is_active: bool


class RoleResponse(BaseModel):
    """Schema for a role in listings."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    color: str
    is_active: bool
    is_system_role: bool
    created_at: datetime
    updated_at: datetime
    permission_count: int = 0
    actor_count: int = 0


class RoleDetail(RoleResponse):
    """Schema for one role with its permissions and assigned actors."""

    permissions: list[PermissionResponse] = Field(default_factory=list)
    actors: list[ActorSummary] = Field(default_factory=list)


class RoleList(BaseModel):
    """Schema for the role listing."""

    roles: list[RoleResponse]
    total: int


class RoleActors(BaseModel):
    """Actors assigned to a role and the ones that could be."""

    role: RoleResponse
    assigned: list[ActorSummary]
    available: list[ActorSummary]


class PermissionGroup(BaseModel):
    """Catalog permissions of one resource."""

    resource: str
    permissions: list[PermissionResponse]


class PermissionCatalog(BaseModel):
    """The whole catalog grouped by resource."""

    resources: list[PermissionGroup]
    total: int


class ActorPermissions(BaseModel):
    """The effective permissions of one actor."""

    actor_id: UUID
    is_superadmin: bool
    permissions: list[str]
