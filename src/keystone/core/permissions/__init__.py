"""Role-based permission system.

Permissions are ``(resource, action)`` pairs from a fixed catalog.
Actors receive them through roles; an actor's effective permissions
are the union over their active roles, or everything for a superadmin.
"""

from keystone.core.permissions.evaluator import (
    Evaluator,
    PermissionSnapshot,
    PolicyEvaluator,
)
from keystone.core.permissions.gateway import (
    CompositionMode,
    EnforcementGateway,
    PermissionContext,
    authorize,
    evaluation_deadline,
    require_all_permissions,
    require_any_permission,
    require_permission,
)
from keystone.core.permissions.store import PolicyStore, PolicyStoreDep


__all__ = [
    "CompositionMode",
    "EnforcementGateway",
    "Evaluator",
    "PermissionContext",
    "PermissionSnapshot",
    "PolicyEvaluator",
    "PolicyStore",
    "PolicyStoreDep",
    "authorize",
    "evaluation_deadline",
    "require_all_permissions",
    "require_any_permission",
    "require_permission",
]
