"""Helpers shared by the test modules."""

from uuid import uuid4

from keystone.core.auth.backend import create_access_token
from keystone.core.permissions.evaluator import PermissionSnapshot
from keystone.core.permissions.gateway import CompositionMode, PermissionContext
from keystone.modules.actors.models import Actor


def auth_headers(actor: Actor) -> dict[str, str]:
    """Authorization headers with a valid access token for ``actor``."""
    return {"Authorization": f"Bearer {create_access_token(actor.id)}"}


def admin_context(*checks: tuple[str, str]) -> PermissionContext:
    """A permission context of a superadmin, for calling services directly."""
    actor_id = uuid4()
    return PermissionContext(
        actor_id=actor_id,
        mode=CompositionMode.ALL,
        checks=checks or (("roles", "view"),),
        results={f"{r}:{a}": True for r, a in checks},
        snapshot=PermissionSnapshot(actor_id=actor_id, is_superadmin=True),
    )
