"""Command: keystone-audit scan - Classify handler modules of a source tree."""

import sys
from enum import StrEnum
from pathlib import Path

import typer
from rich.console import Console


console = Console()


class OutputFormat(StrEnum):
    TEXT = "text"
    JSON = "json"


def scan(
    source_root: Path = typer.Argument(
        ..., exists=True, help="Directory (or single file) holding the handler modules"
    ),
    catalog_file: Path | None = typer.Option(
        None,
        "--catalog",
        "-c",
        exists=True,
        dir_okay=False,
        help="YAML permission catalog (defaults to the built-in catalog)",
    ),
    allow: list[str] | None = typer.Option(
        None, "--allow", "-a", help="Extra allow-list path marker (repeatable)"
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.TEXT, "--format", "-f", help="Report format"
    ),
    workers: int | None = typer.Option(
        None, "--workers", "-w", min=1, help="Files analyzed in parallel"
    ),
    fail_on_issues: bool = typer.Option(
        False, "--fail-on-issues", help="Exit with code 1 when issues are found"
    ),
) -> None:
    """Report which enforcement idiom each handler module uses.

    Advisory by default: the exit code is 0 even when issues are found,
    unless --fail-on-issues is given.
    """
    from keystone.audit.report import build_report, render_json, render_text
    from keystone.audit.scanner import HandlerScanner
    from keystone.config import settings
    from keystone.core.logging import configure_logging
    from keystone.core.permissions.catalog import DEFAULT_CATALOG, load_catalog_file

    configure_logging(json_logs=False, stream=sys.stderr, cache_loggers=False)

    if catalog_file is not None:
        try:
            catalog = load_catalog_file(catalog_file)
        except (OSError, ValueError) as e:
            console.print(f"[red]Error:[/red] Cannot load catalog {catalog_file}: {e}")
            raise typer.Exit(1) from None
    else:
        catalog = list(DEFAULT_CATALOG)

    scanner = HandlerScanner(
        catalog=catalog,
        allow_list=[*settings.audit_allow_list, *(allow or [])],
        workers=workers,
    )
    result = scanner.scan(source_root)
    report = build_report(source_root, result, catalog_size=len({e.key for e in catalog}))

    if output_format is OutputFormat.JSON:
        typer.echo(render_json(report))
    else:
        render_text(report, console)

    if fail_on_issues and report.has_issues:
        raise typer.Exit(1)
