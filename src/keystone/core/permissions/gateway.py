"""Enforcement gateway for protected operations.

A protected route declares what it needs as a dependency:

    @router.delete("/roles/{role_id}")
    async def delete_role(
        role_id: UUID,
        context: Annotated[PermissionContext, Depends(require_permission("roles", "delete"))],
    ) -> None:
        ...

The gateway resolves the caller, evaluates the checks against one
snapshot of their permissions and hands the route a
``PermissionContext``. Nested checks inside the operation are answered
from that snapshot.
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from uuid import UUID

import structlog
from fastapi import Request

from keystone.config import settings
from keystone.core.auth.dependencies import OptionalActor
from keystone.core.errors import (
    AuthenticationRequired,
    PermissionDenied,
    ServiceUnavailableError,
)
from keystone.core.permissions.evaluator import (
    Evaluator,
    PermissionSnapshot,
    PolicyEvaluator,
)
from keystone.core.permissions.models import permission_key


logger = structlog.get_logger()


class CompositionMode(StrEnum):
    """How the results of several checks combine into one decision."""

    ALL = "all"
    ANY = "any"
    SINGLE = "single"


def _pair(resource: str, action: str) -> dict[str, str]:
    return {"resource": resource, "action": action}


def _denial(
    mode: CompositionMode,
    checks: tuple[tuple[str, str], ...],
    results: dict[str, bool],
) -> PermissionDenied:
    """Build the 403 for a failed decision."""
    if mode is CompositionMode.SINGLE:
        resource, action = checks[0]
        return PermissionDenied(
            f"Missing required permission: {permission_key(resource, action)}",
            details={"required": _pair(resource, action)},
        )

    missing = [
        (resource, action)
        for resource, action in checks
        if not results[permission_key(resource, action)]
    ]
    keys = ", ".join(permission_key(r, a) for r, a in missing)
    if mode is CompositionMode.ANY:
        message = f"Missing required permission. Need one of: {keys}"
    else:
        message = f"Missing required permissions: {keys}"

    return PermissionDenied(
        message,
        details={"missing": [_pair(r, a) for r, a in missing]},
    )


@dataclass(frozen=True)
class PermissionContext:
    """The outcome of a successful gateway decision.

    Attributes:
        actor_id: The authorized actor
        mode: Composition mode the gateway used
        checks: The (resource, action) pairs the gateway evaluated
        results: Per-check decisions keyed by 'resource:action'
        snapshot: The permission read the decision was made from
    """

    actor_id: UUID
    mode: CompositionMode
    checks: tuple[tuple[str, str], ...]
    results: dict[str, bool] = field(default_factory=dict)
    snapshot: PermissionSnapshot | None = None

    def allows(self, resource: str, action: str) -> bool:
        """Answer a secondary check without another database read."""
        key = permission_key(resource, action)
        if key in self.results:
            return self.results[key]
        if self.snapshot is None:
            return False
        return self.snapshot.allows(resource, action)

    def require(self, resource: str, action: str) -> None:
        """Raise PermissionDenied unless the actor holds the permission."""
        if self.allows(resource, action):
            return

        logger.warning(
            "permission_denied",
            actor_id=str(self.actor_id),
            required=permission_key(resource, action),
        )
        raise PermissionDenied(
            f"Missing required permission: {permission_key(resource, action)}",
            details={"required": _pair(resource, action)},
        )


def _normalize_checks(
    checks: Iterable[tuple[str, str]], mode: CompositionMode
) -> tuple[tuple[str, str], ...]:
    normalized = tuple((str(resource), str(action)) for resource, action in checks)
    if not normalized:
        raise ValueError("At least one (resource, action) check is required")
    if mode is CompositionMode.SINGLE and len(normalized) != 1:
        raise ValueError("SINGLE mode takes exactly one (resource, action) check")
    return normalized


@asynccontextmanager
async def evaluation_deadline(actor_id: UUID, checks: Iterable[str] = ()) -> AsyncIterator[None]:
    """Bound a permission evaluation by ``authorization_timeout_seconds``.

    Raises:
        ServiceUnavailableError: If the evaluation does not finish in time
    """
    try:
        async with asyncio.timeout(settings.authorization_timeout_seconds):
            yield
    except TimeoutError:
        logger.error(
            "authorization_timeout",
            actor_id=str(actor_id),
            checks=list(checks),
            timeout_seconds=settings.authorization_timeout_seconds,
        )
        raise ServiceUnavailableError("Authorization check timed out") from None


async def authorize(
    evaluator: PolicyEvaluator,
    actor_id: UUID,
    checks: Iterable[tuple[str, str]],
    mode: CompositionMode = CompositionMode.ALL,
) -> PermissionContext:
    """Decide whether an actor may proceed.

    All checks are evaluated against one snapshot, so the decision never
    mixes grants from before and after a concurrent role edit.

    Args:
        evaluator: Policy evaluator bound to the current session
        actor_id: The actor to authorize
        checks: (resource, action) pairs
        mode: How the individual results combine

    Returns:
        The permission context for the operation

    Raises:
        PermissionDenied: If the combined decision is a deny
    """
    checks = _normalize_checks(checks, mode)
    snapshot = await evaluator.snapshot(actor_id)
    results = snapshot.check_all(checks)

    if mode is CompositionMode.ANY:
        granted = any(results.values())
    else:
        granted = all(results.values())

    if not granted:
        logger.warning(
            "permission_denied",
            actor_id=str(actor_id),
            mode=mode.value,
            checks=list(results),
        )
        raise _denial(mode, checks, results)

    if snapshot.is_superadmin:
        logger.warning(
            "superadmin_bypass",
            actor_id=str(actor_id),
            permissions=list(results),
        )

    return PermissionContext(
        actor_id=actor_id,
        mode=mode,
        checks=checks,
        results=results,
        snapshot=snapshot,
    )


class EnforcementGateway:
    """FastAPI dependency guarding a protected operation.

    Attributes:
        checks: The (resource, action) pairs this gateway evaluates
        mode: How the individual results combine
    """

    def __init__(
        self,
        checks: Iterable[tuple[str, str]],
        mode: CompositionMode = CompositionMode.ALL,
    ) -> None:
        self.mode = CompositionMode(mode)
        self.checks = _normalize_checks(checks, self.mode)

    def __repr__(self) -> str:
        keys = ", ".join(permission_key(r, a) for r, a in self.checks)
        return f"EnforcementGateway({self.mode.value}: {keys})"

    async def __call__(
        self,
        request: Request,
        actor: OptionalActor,
        evaluator: Evaluator,
    ) -> PermissionContext:
        """Resolve the caller and authorize them.

        Raises:
            AuthenticationRequired: If no identity could be resolved
            PermissionDenied: If the checks fail
            ServiceUnavailableError: If evaluation exceeds the timeout
        """
        if actor is None:
            raise AuthenticationRequired()

        keys = [permission_key(r, a) for r, a in self.checks]
        async with evaluation_deadline(actor.id, keys):
            context = await authorize(evaluator, actor.id, self.checks, self.mode)

        request.state.permission_context = context
        return context


def require_permission(resource: str, action: str) -> EnforcementGateway:
    """Gateway requiring a single permission.

    Usage:
        context: Annotated[PermissionContext, Depends(require_permission("roles", "delete"))]
    """
    return EnforcementGateway([(resource, action)], CompositionMode.SINGLE)


def require_all_permissions(permissions: list[tuple[str, str]]) -> EnforcementGateway:
    """Gateway requiring every one of the given permissions."""
    return EnforcementGateway(permissions, CompositionMode.ALL)


def require_any_permission(permissions: list[tuple[str, str]]) -> EnforcementGateway:
    """Gateway requiring at least one of the given permissions."""
    return EnforcementGateway(permissions, CompositionMode.ANY)

