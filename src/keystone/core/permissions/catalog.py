"""Default permission catalog and system roles.

This config defines the permission matrix for every resource of the
admin platform. It is used by the seed script to populate the
``permissions`` table and by the consistency auditor when no catalog
file is given.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import yaml

from keystone.core.permissions.models import permission_key


class PermissionLike(Protocol):
    """Anything carrying a resource and an action."""

    resource: str
    action: str


@dataclass(frozen=True)
class CatalogEntry:
    """One ``(resource, action)`` pair of the permission catalog."""

    resource: str
    action: str
    description: str = ""

    @property
    def key(self) -> str:
        return permission_key(self.resource, self.action)


# resource -> {action: description}
RESOURCES: dict[str, dict[str, str]] = {
    "analytics": {
        "advanced": "Access advanced analytics features",
        "export": "Export analytics data",
        "view": "View analytics dashboard",
    },
    "applications": {
        "approve_hire": "Approve hiring decisions for applications",
        "assign": "Assign applications to reviewers",
        "bulk_actions": "Perform bulk operations on applications",
        "create": "Create applications (for users)",
        "delete": "Delete applications",
        "edit": "Edit application details",
        "export": "Export application data",
        "notes": "Add/edit application notes",
        "status_change": "Change application status",
        "view": "View job applications",
    },
    "audit_logs": {
        "export": "Export audit log data",
        "view": "View system audit logs",
    },
    "emails": {
        "automation": "Set up email automation rules",
        "create": "Create email campaigns",
        "send": "Send emails to applicants",
        "templates": "Manage email templates",
        "view": "View email campaigns and history",
    },
    "google-analytics": {
        "view": "View Google Analytics data and reports",
    },
    "interviews": {
        "calendar": "Manage interview calendar integration",
        "create": "Schedule new interviews",
        "delete": "Cancel/delete interviews",
        "edit": "Modify interview details",
        "notes": "Add interview feedback/notes",
        "reschedule": "Reschedule interviews",
        "view": "View interview schedules",
    },
    "jobs": {
        "approve": "Approve jobs for publishing",
        "clone": "Duplicate existing jobs",
        "create": "Create new job postings",
        "delete": "Delete job postings",
        "edit": "Edit existing jobs",
        "export": "Export job data",
        "feature": "Mark jobs as featured",
        "publish": "Publish/unpublish jobs",
        "view": "View job listings and details",
    },
    "roles": {
        "assign": "Assign roles to users",
        "create": "Create new roles",
        "delete": "Delete roles",
        "edit": "Edit existing roles",
        "view": "View roles and permissions",
    },
    "settings": {
        "edit_branding": "Edit branding and appearance",
        "edit_notifications": "Edit notification settings",
        "edit_system": "Edit system-wide settings",
        "integrations": "Manage third-party integrations",
        "view": "View system settings",
    },
    "users": {
        "create": "Create new user accounts",
        "delete": "Delete user accounts",
        "edit": "Edit user information",
        "export": "Export user data",
        "impersonate": "Login as another user",
        "roles": "Manage user roles and permissions",
        "view": "View user profiles and lists",
    },
    "weekly_digest": {
        "edit": "Configure weekly digest",
        "send": "Send test/manual weekly digests",
        "view": "View weekly digest settings",
    },
}

DEFAULT_CATALOG: tuple[CatalogEntry, ...] = tuple(
    CatalogEntry(resource=resource, action=action, description=description)
    for resource, actions in sorted(RESOURCES.items())
    for action, description in sorted(actions.items())
)


@dataclass(frozen=True)
class SystemRoleDefinition:
    """A role created at setup time that cannot be renamed or deleted."""

    name: str
    description: str
    color: str
    permissions: tuple[str, ...]


SYSTEM_ROLES: tuple[SystemRoleDefinition, ...] = (
    SystemRoleDefinition(
        name="Administrator",
        description="Full access to every administrative operation",
        color="red",
        permissions=tuple(entry.key for entry in DEFAULT_CATALOG),
    ),
    SystemRoleDefinition(
        name="Recruiter",
        description="Day-to-day hiring work on jobs, applications and interviews",
        color="green",
        permissions=tuple(
            entry.key
            for entry in DEFAULT_CATALOG
            if entry.resource in {"jobs", "applications", "interviews", "emails"}
            and entry.action not in {"delete", "approve", "approve_hire", "automation"}
        ),
    ),
    SystemRoleDefinition(
        name="Viewer",
        description="Read-only access to the admin area",
        color="gray",
        permissions=tuple(
            entry.key for entry in DEFAULT_CATALOG if entry.action == "view"
        ),
    ),
)


def catalog_resources(entries: Iterable[PermissionLike]) -> dict[str, list[str]]:
    """Group catalog entries by resource.

    Returns:
        Mapping of resource name to its sorted action names
    """
    grouped: dict[str, list[str]] = {}
    for entry in entries:
        grouped.setdefault(entry.resource, []).append(entry.action)
    return {resource: sorted(actions) for resource, actions in sorted(grouped.items())}


def load_catalog_file(path: Path) -> list[CatalogEntry]:
    """Load a permission catalog from a YAML file.

    Two layouts are accepted::

        # mapping form
        jobs:
          view: View job listings
          edit: Edit existing jobs

        # list form
        - {resource: jobs, action: view, description: View job listings}

    Raises:
        ValueError: If the file does not describe a catalog
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8"))

    entries: list[CatalogEntry] = []
    if isinstance(data, dict):
        for resource, actions in data.items():
            if isinstance(actions, dict):
                for action, description in actions.items():
                    entries.append(CatalogEntry(str(resource), str(action), str(description or "")))
            elif isinstance(actions, list):
                for action in actions:
                    entries.append(CatalogEntry(str(resource), str(action)))
            else:
                raise ValueError(f"Invalid actions for resource '{resource}' in {path}")
    elif isinstance(data, list):
        for item in data:
            if not isinstance(item, dict) or "resource" not in item or "action" not in item:
                raise ValueError(f"Catalog entries in {path} need 'resource' and 'action'")
            entries.append(
                CatalogEntry(
                    str(item["resource"]),
                    str(item["action"]),
                    str(item.get("description") or ""),
                )
            )
    else:
        raise ValueError(f"{path} does not contain a permission catalog")

    return entries
