"""Command: keystone-audit catalog - Show the permission catalog."""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table


console = Console()


def show_catalog(
    catalog_file: Path | None = typer.Option(
        None,
        "--catalog",
        "-c",
        exists=True,
        dir_okay=False,
        help="YAML permission catalog (defaults to the built-in catalog)",
    ),
) -> None:
    """List the permissions of a catalog, grouped by resource."""
    from keystone.core.permissions.catalog import (
        DEFAULT_CATALOG,
        catalog_resources,
        load_catalog_file,
    )

    if catalog_file is not None:
        try:
            catalog = load_catalog_file(catalog_file)
        except (OSError, ValueError) as e:
            console.print(f"[red]Error:[/red] Cannot load catalog {catalog_file}: {e}")
            raise typer.Exit(1) from None
    else:
        catalog = list(DEFAULT_CATALOG)

    grouped = catalog_resources(catalog)

    table = Table(title="Permission Catalog", show_header=True)
    table.add_column("Resource", style="cyan", no_wrap=True)
    table.add_column("Actions")
    table.add_column("Count", style="green", justify="right")

    for resource, actions in grouped.items():
        table.add_row(resource, ", ".join(actions), str(len(actions)))

    console.print()
    console.print(table)
    console.print(f"\n[bold]{len(catalog)}[/bold] permissions across {len(grouped)} resources\n")
