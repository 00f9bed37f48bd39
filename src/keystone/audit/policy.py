"""Audit of the stored policy data.

Complements the source scan: looks at what the policy store actually
holds and points out data worth a second look.
"""

from uuid import UUID

from pydantic import BaseModel, Field
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy.ext.asyncio import AsyncSession

from keystone.core.permissions.catalog import catalog_resources
from keystone.core.permissions.store import PolicyStore


class RoleAudit(BaseModel):
    """One role with its counts."""

    id: UUID
    name: str
    is_system_role: bool
    is_active: bool
    actor_count: int
    permissions: list[str]

    @property
    def permission_count(self) -> int:
        return len(self.permissions)


class ActorAudit(BaseModel):
    """An actor worth reviewing."""

    id: UUID
    email: str
    privilege_level: int


class PolicyAudit(BaseModel):
    """Findings of one policy data audit."""

    catalog: dict[str, list[str]]
    roles: list[RoleAudit]
    actors_without_roles: list[ActorAudit] = Field(default_factory=list)
    orphan_permissions: list[str] = Field(default_factory=list)
    superadmins: list[ActorAudit] = Field(default_factory=list)
    overprivileged_roles: list[RoleAudit] = Field(default_factory=list)
    overprivileged_threshold: int

    @property
    def catalog_size(self) -> int:
        return sum(len(actions) for actions in self.catalog.values())


async def audit_policy(session: AsyncSession, overprivileged_threshold: int) -> PolicyAudit:
    """Collect the policy findings.

    Args:
        session: Database session (read only)
        overprivileged_threshold: Non-system roles holding more
            permissions than this are reported

    Returns:
        The findings
    """
    store = PolicyStore(session)

    permissions = await store.list_permissions()
    roles = await store.list_roles()
    actor_counts = await store.assignment_counts()
    granted = await store.granted_permission_ids()
    assigned = await store.assigned_actor_ids()
    actors = await store.list_actors()

    role_rows = [
        RoleAudit(
            id=role.id,
            name=role.name,
            is_system_role=role.is_system_role,
            is_active=role.is_active,
            actor_count=actor_counts.get(role.id, 0),
            permissions=[p.key for p in role.permissions],
        )
        for role in roles
    ]

    return PolicyAudit(
        catalog=catalog_resources(permissions),
        roles=role_rows,
        actors_without_roles=[
            ActorAudit(id=a.id, email=a.email, privilege_level=a.privilege_level)
            for a in actors
            if a.is_active and a.id not in assigned
        ],
        orphan_permissions=[p.key for p in permissions if p.id not in granted],
        superadmins=[
            ActorAudit(id=a.id, email=a.email, privilege_level=a.privilege_level)
            for a in actors
            if a.is_superadmin
        ],
        overprivileged_roles=[
            row
            for row in role_rows
            if not row.is_system_role and row.permission_count > overprivileged_threshold
        ],
        overprivileged_threshold=overprivileged_threshold,
    )


def render_policy(audit: PolicyAudit, console: Console) -> None:
    """Print the policy findings."""
    console.print(f"\n[bold cyan]Permission catalog:[/bold cyan] {audit.catalog_size} permissions\n")
    for resource, actions in audit.catalog.items():
        console.print(f"  [cyan]{resource}[/cyan] ({len(actions)}): {', '.join(actions)}")

    table = Table(title=f"Roles ({len(audit.roles)})", show_header=True, title_justify="left")
    table.add_column("Name", style="cyan")
    table.add_column("System", no_wrap=True)
    table.add_column("Active", no_wrap=True)
    table.add_column("Actors", justify="right")
    table.add_column("Permissions", justify="right")
    for role in audit.roles:
        table.add_row(
            escape(role.name),
            "yes" if role.is_system_role else "",
            "yes" if role.is_active else "[yellow]no[/yellow]",
            str(role.actor_count),
            str(role.permission_count),
        )
    console.print()
    console.print(table)

    if audit.actors_without_roles:
        console.print(f"\n[bold yellow]Actors without roles ({len(audit.actors_without_roles)}):[/bold yellow]")
        for actor in audit.actors_without_roles:
            console.print(f"  - {actor.email} (legacy privilege level: {actor.privilege_level})")

    if audit.orphan_permissions:
        console.print(f"\n[bold yellow]Permissions granted to no role ({len(audit.orphan_permissions)}):[/bold yellow]")
        for key in audit.orphan_permissions:
            console.print(f"  - {key}")

    console.print("\n[bold]Security review[/bold]")
    if audit.superadmins:
        console.print(f"  - {len(audit.superadmins)} superadmin(s) bypass all permission checks:")
        for actor in audit.superadmins:
            console.print(f"      {actor.email}")
    if audit.overprivileged_roles:
        console.print(
            f"  - {len(audit.overprivileged_roles)} role(s) hold more than "
            f"{audit.overprivileged_threshold} permissions:"
        )
        for role in audit.overprivileged_roles:
            console.print(f"      {escape(role.name)}: {role.permission_count} permissions")
    if not audit.superadmins and not audit.overprivileged_roles:
        console.print("  [green]Nothing to review.[/green]")
    console.print()
