"""Pydantic schemas for the consistency audit."""

from enum import StrEnum

from pydantic import BaseModel, Field


class MigrationState(StrEnum):
    """Where a handler module stands in the move to granular permissions."""

    MIGRATED = "migrated"
    LEGACY_ONLY = "legacy_only"
    UNPROTECTED = "unprotected"
    PUBLIC = "public"


class IssueTag(StrEnum):
    """Problems reported for a handler module."""

    NO_PROTECTION = "NO_PROTECTION"
    HARDCODED_PRIVILEGE_CHECK = "HARDCODED_PRIVILEGE_CHECK"
    UNKNOWN_PERMISSION = "UNKNOWN_PERMISSION"


class EnforcementCall(BaseModel):
    """A call into the gateway or the evaluator."""

    function: str = Field(..., description="Called name (e.g., 'require_permission')")
    resource: str | None = Field(None, description="Literal resource, if given")
    action: str | None = Field(None, description="Literal action, if given")
    line: int

    @property
    def key(self) -> str | None:
        if self.resource is None or self.action is None:
            return None
        return f"{self.resource}:{self.action}"


class LegacyCheck(BaseModel):
    """A direct comparison against the legacy privilege level."""

    expression: str = Field(..., description="Source text of the comparison")
    operator: str = Field(..., description="Comparison with the privilege level on the left")
    threshold: int
    line: int


class HandlerRecord(BaseModel):
    """Audit result for one module exposing HTTP handlers."""

    path: str
    http_methods: list[str]
    enforcement_calls: list[EnforcementCall] = Field(default_factory=list)
    legacy_checks: list[LegacyCheck] = Field(default_factory=list)
    issues: list[IssueTag] = Field(default_factory=list)
    resource: str
    migration_state: MigrationState


class ScanFailure(BaseModel):
    """A file that could not be read or parsed."""

    path: str
    error: str


class AuditSummary(BaseModel):
    """Totals for one audit run.

    ``issues`` counts issue tags; a unit can carry several, so
    ``units_with_issues`` can be lower.
    """

    units_scanned: int
    issues: int
    units_with_issues: int = 0
    catalog_size: int
    files_skipped: int
    by_state: dict[str, int] = Field(default_factory=dict)
    by_issue: dict[str, int] = Field(default_factory=dict)


class AuditReport(BaseModel):
    """The complete result of a source audit."""

    source_root: str
    groups: dict[str, list[HandlerRecord]]
    failures: list[ScanFailure] = Field(default_factory=list)
    summary: AuditSummary
    remediations: list[str]

    @property
    def has_issues(self) -> bool:
        return self.summary.issues > 0
