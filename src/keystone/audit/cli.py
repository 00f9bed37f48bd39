"""keystone-audit: offline checks of how authorization is enforced.

``scan`` reads handler source code, ``policy`` reads the policy store and
``catalog`` prints the permission catalog. None of them change anything.
"""

import typer
from rich.console import Console

from keystone import __version__
from keystone.audit.commands import catalog, policy, scan


console = Console()

app = typer.Typer(
    name="keystone-audit",
    help=(
        "Find handlers still gated by [bold]privilege_level[/bold] or not gated at all, "
        "and review the roles and grants stored for the platform."
    ),
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command(name="scan")(scan.scan)
app.command(name="policy")(policy.policy)
app.command(name="catalog")(catalog.show_catalog)


def _print_version(value: bool) -> None:
    if not value:
        return
    console.print(f"keystone-audit [green]{__version__}[/green]")
    raise typer.Exit()


@app.callback()
def audit(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_print_version,
        is_eager=True,
        help="Print the keystone version and exit.",
    ),
) -> None:
    """Report on permission enforcement without touching the platform."""


def main() -> None:
    app()


if __name__ == "__main__":
    main()
