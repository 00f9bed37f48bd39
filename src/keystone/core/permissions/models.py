"""Permission system database models.

This module defines the RBAC (Role-Based Access Control) models:
- Permission: An action that can be performed on a resource
- Role: A named, reusable bundle of permissions
- RolePermission: Junction table linking roles to permissions
- UserRoleAssignment: Junction table linking actors to roles
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from keystone.core.constants import (
    DEFAULT_ROLE_COLOR,
    MAX_DESCRIPTION_LENGTH,
    MAX_PERMISSION_ACTION_LENGTH,
    MAX_PERMISSION_RESOURCE_LENGTH,
    MAX_ROLE_COLOR_LENGTH,
    MAX_ROLE_NAME_LENGTH,
    PERMISSION_KEY_SEPARATOR,
)
from keystone.core.database.base import Base, TimestampMixin, UUIDMixin


def permission_key(resource: str, action: str) -> str:
    """Return the canonical ``resource:action`` key."""
    return f"{resource}{PERMISSION_KEY_SEPARATOR}{action}"


class Permission(Base, UUIDMixin, TimestampMixin):
    """Permission model representing an action on a resource.

    Permissions form a static catalog seeded at setup time; they are
    not edited at runtime.

    Attributes:
        resource: The resource being protected (e.g., "jobs", "roles")
        action: The action being performed (e.g., "view", "edit", "delete")
        description: Human-readable description of the permission

    Examples:
        - resource="jobs", action="publish" -> Can publish/unpublish jobs
        - resource="roles", action="assign" -> Can assign roles to actors
    """

    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("resource", "action", name="uq_permission_resource_action"),
    )

    resource: Mapped[str] = mapped_column(
        String(MAX_PERMISSION_RESOURCE_LENGTH),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(
        String(MAX_PERMISSION_ACTION_LENGTH),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )

    @property
    def key(self) -> str:
        """Return the permission key as 'resource:action'."""
        return permission_key(self.resource, self.action)

    def __repr__(self) -> str:
        return f"<Permission({self.resource}:{self.action})>"


class RolePermission(Base):
    """Grant of one permission to one role.

    The rows for a role are always replaced as a whole set, never
    patched one by one.
    """

    __tablename__ = "role_permissions"

    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    permission_id: Mapped[UUID] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<RolePermission(role_id={self.role_id}, permission_id={self.permission_id})>"


class Role(Base, UUIDMixin, TimestampMixin):
    """Role model representing a named set of permissions.

    Attributes:
        name: Unique role name (e.g., "Administrator", "Recruiter")
        description: Human-readable description of the role
        color: Badge color used by the management UI
        is_active: Inactive roles grant nothing and accept no new actors
        is_system_role: System roles cannot be renamed or deleted
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(
        String(MAX_ROLE_NAME_LENGTH),
        nullable=False,
        unique=True,
        index=True,
    )
    description: Mapped[str | None] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=True,
    )
    color: Mapped[str] = mapped_column(
        String(MAX_ROLE_COLOR_LENGTH),
        default=DEFAULT_ROLE_COLOR,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    is_system_role: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Read-only view; grants are written through RolePermission.
    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        secondary="role_permissions",
        order_by=[Permission.resource, Permission.action],
        lazy="selectin",
        viewonly=True,
    )

    @property
    def permission_keys(self) -> set[str]:
        """Return the granted permissions as 'resource:action' keys."""
        return {permission.key for permission in self.permissions}

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name})>"


class UserRoleAssignment(Base):
    """Junction table linking actors to roles.

    An actor can hold several roles; their effective permissions are
    the union of the grants of their active roles.
    """

    __tablename__ = "user_role_assignments"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("actors.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    role_id: Mapped[UUID] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<UserRoleAssignment(user_id={self.user_id}, role_id={self.role_id})>"
