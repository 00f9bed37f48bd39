"""Consistency audit: checks that handlers enforce permissions the granular way."""

from keystone.audit.report import REMEDIATIONS, build_report
from keystone.audit.scanner import HandlerScanner, ScanResult
from keystone.audit.schemas import (
    AuditReport,
    EnforcementCall,
    HandlerRecord,
    IssueTag,
    LegacyCheck,
    MigrationState,
    ScanFailure,
)


__all__ = [
    "REMEDIATIONS",
    "AuditReport",
    "EnforcementCall",
    "HandlerRecord",
    "HandlerScanner",
    "IssueTag",
    "LegacyCheck",
    "MigrationState",
    "ScanFailure",
    "ScanResult",
    "build_report",
]
