"""Command: keystone-audit policy - Audit the stored roles and grants."""

import asyncio
import sys

import typer
from rich.console import Console


console = Console()


def policy(
    threshold: int | None = typer.Option(
        None,
        "--threshold",
        "-t",
        min=0,
        help="Report non-system roles with more permissions than this",
    ),
) -> None:
    """Review roles, grants and actors stored in the policy database."""
    from sqlalchemy.exc import SQLAlchemyError

    from keystone.audit.policy import audit_policy, render_policy
    from keystone.config import settings
    from keystone.core.database import async_engine, async_session_factory
    from keystone.core.logging import configure_logging

    configure_logging(json_logs=False, stream=sys.stderr, cache_loggers=False)

    limit = settings.overprivileged_role_threshold if threshold is None else threshold

    async def run() -> None:
        try:
            async with async_session_factory() as session:
                audit = await audit_policy(session, overprivileged_threshold=limit)
        finally:
            await async_engine.dispose()
        render_policy(audit, console)

    try:
        asyncio.run(run())
    except SQLAlchemyError as e:
        console.print(f"[red]Error:[/red] Cannot read the policy store: {e}")
        raise typer.Exit(1) from None
