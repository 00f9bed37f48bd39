"""Audit report assembly and rendering."""

from collections import Counter
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from keystone.audit.scanner import UNCATEGORIZED, ScanResult
from keystone.audit.schemas import AuditReport, AuditSummary, HandlerRecord, MigrationState


REMEDIATIONS: tuple[str, ...] = (
    "Fix all HARDCODED_PRIVILEGE_CHECK handlers by replacing privilege_level "
    "comparisons with require_permission.",
    "Add an enforcement dependency (require_permission, require_all_permissions "
    "or require_any_permission) to all NO_PROTECTION handlers.",
    "Verify the permission-to-route mapping is complete.",
    "Test that each permission grants and denies access correctly.",
)

_STATE_STYLES = {
    MigrationState.MIGRATED: "green",
    MigrationState.LEGACY_ONLY: "yellow",
    MigrationState.UNPROTECTED: "red",
    MigrationState.PUBLIC: "dim",
}


def build_report(source_root: Path, scan: ScanResult, catalog_size: int) -> AuditReport:
    """Group scan records by resource and compute the summary.

    Groups are ordered by resource name with ``uncategorized`` last;
    records inside a group are ordered by path.
    """
    groups: dict[str, list[HandlerRecord]] = {}
    for record in sorted(scan.records, key=lambda r: r.path):
        groups.setdefault(record.resource, []).append(record)

    ordered = dict(
        sorted(groups.items(), key=lambda item: (item[0] == UNCATEGORIZED, item[0]))
    )

    states = Counter(record.migration_state.value for record in scan.records)
    issues = Counter(issue.value for record in scan.records for issue in record.issues)

    summary = AuditSummary(
        units_scanned=len(scan.records),
        issues=sum(issues.values()),
        units_with_issues=sum(1 for record in scan.records if record.issues),
        catalog_size=catalog_size,
        files_skipped=len(scan.failures),
        by_state=dict(sorted(states.items())),
        by_issue=dict(sorted(issues.items())),
    )

    return AuditReport(
        source_root=str(source_root),
        groups=ordered,
        failures=sorted(scan.failures, key=lambda f: f.path),
        summary=summary,
        remediations=list(REMEDIATIONS),
    )


def render_json(report: AuditReport) -> str:
    """Serialize the report for machines."""
    return report.model_dump_json(indent=2)


def render_text(report: AuditReport, console: Console) -> None:
    """Print the grouped report for people."""
    console.print(f"\n[bold cyan]Permission audit:[/bold cyan] {escape(report.source_root)}\n")

    if not report.groups:
        console.print("[yellow]No HTTP handler modules found.[/yellow]")

    for resource, records in report.groups.items():
        table = Table(title=f"{resource} ({len(records)})", show_header=True, title_justify="left")
        table.add_column("Path", style="cyan")
        table.add_column("Methods", no_wrap=True)
        table.add_column("Enforcement")
        table.add_column("Legacy checks")
        table.add_column("State", no_wrap=True)
        table.add_column("Issues")

        for record in records:
            style = _STATE_STYLES[record.migration_state]
            table.add_row(
                escape(record.path),
                ", ".join(record.http_methods),
                "\n".join(
                    f"{call.function}({call.key or '?'}) L{call.line}"
                    for call in record.enforcement_calls
                )
                or "-",
                "\n".join(
                    f"privilege_level {check.operator} {check.threshold} L{check.line}"
                    for check in record.legacy_checks
                )
                or "-",
                f"[{style}]{record.migration_state.value}[/{style}]",
                "\n".join(f"[red]{issue.value}[/red]" for issue in record.issues) or "-",
            )

        console.print(table)
        console.print()

    if report.failures:
        console.print("[bold yellow]Skipped files:[/bold yellow]")
        for failure in report.failures:
            console.print(f"  [yellow]![/yellow] {escape(failure.path)}: {escape(failure.error)}")
        console.print()

    summary = report.summary
    console.print("[bold]Summary[/bold]")
    console.print(f"  Units scanned:   {summary.units_scanned}")
    console.print(f"  Issues:          {summary.issues}")
    console.print(f"  Affected units:  {summary.units_with_issues}")
    console.print(f"  Catalog size:    {summary.catalog_size}")
    console.print(f"  Files skipped:   {summary.files_skipped}")
    for state, count in summary.by_state.items():
        console.print(f"  {state + ':':<17}{count}")

    console.print("\n[bold]Recommended remediations[/bold]")
    for number, remediation in enumerate(report.remediations, start=1):
        console.print(f"  {number}. {remediation}")
    console.print()
