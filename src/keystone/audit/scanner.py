"""Static detection of how handler modules enforce authorization.

Each Python module under the source root that exposes HTTP handlers is
parsed with ``ast`` and searched for three idioms:

- calls to the enforcement gateway (``require_permission`` and friends)
- direct calls to the evaluator (``has_permission`` and friends)
- comparisons against the legacy ``privilege_level`` integer

Nothing is imported or executed.
"""

import ast
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from keystone.audit.schemas import (
    EnforcementCall,
    HandlerRecord,
    IssueTag,
    LegacyCheck,
    MigrationState,
    ScanFailure,
)
from keystone.core.permissions.catalog import CatalogEntry


logger = structlog.get_logger()

GATEWAY_FUNCTIONS = frozenset(
    {
        "require_permission",
        "require_all_permissions",
        "require_any_permission",
        "EnforcementGateway",
    }
)
EVALUATOR_FUNCTIONS = frozenset({"has_permission", "has_permissions", "check_permission"})
LEGACY_FIELDS = frozenset({"privilege_level", "privilegeLevel"})
HTTP_METHODS = ("get", "post", "put", "patch", "delete")
UNCATEGORIZED = "uncategorized"
RESOURCE_ANNOTATION = "__resource__"

# Markers that also match as a segment prefix ("healthz", "favicon_ico")
PREFIX_MARKERS = frozenset({"health", "favicon", "logo"})

DEFAULT_EXCLUDED_DIRS = frozenset(
    {
        ".git",
        ".venv",
        "venv",
        "__pycache__",
        "node_modules",
        "site-packages",
        "alembic",
    }
)

_OPERATORS: dict[type[ast.cmpop], str] = {
    ast.Eq: "==",
    ast.NotEq: "!=",
    ast.Lt: "<",
    ast.LtE: "<=",
    ast.Gt: ">",
    ast.GtE: ">=",
}
_MIRRORED = {"<": ">", "<=": ">=", ">": "<", ">=": "<=", "==": "==", "!=": "!="}


def _normalize(name: str) -> str:
    return name.strip().lower().replace("-", "_")


def _singular(name: str) -> str:
    if name.endswith("ies"):
        return name[:-3] + "y"
    if name.endswith("s") and not name.endswith("ss"):
        return name[:-1]
    return name


def _call_name(func: ast.expr) -> str | None:
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        return func.attr
    return None


def _string(node: ast.expr) -> str | None:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    return None


def _integer(node: ast.expr) -> int | None:
    if isinstance(node, ast.Constant) and type(node.value) is int:
        return node.value
    if (
        isinstance(node, ast.UnaryOp)
        and isinstance(node.op, ast.USub)
        and isinstance(node.operand, ast.Constant)
        and type(node.operand.value) is int
    ):
        return -node.operand.value
    return None


def _pairs(node: ast.expr) -> list[tuple[str, str]] | None:
    """Literal ``[(resource, action), ...]`` sequences, else None."""
    if not isinstance(node, (ast.List, ast.Tuple, ast.Set)):
        return None

    pairs: list[tuple[str, str]] = []
    for element in node.elts:
        if not isinstance(element, (ast.Tuple, ast.List)) or len(element.elts) != 2:
            return None
        resource, action = (_string(e) for e in element.elts)
        if resource is None or action is None:
            return None
        pairs.append((resource, action))
    return pairs or None


def _is_legacy_reference(node: ast.expr) -> bool:
    if isinstance(node, ast.Name):
        return node.id in LEGACY_FIELDS
    if isinstance(node, ast.Attribute):
        return node.attr in LEGACY_FIELDS
    if isinstance(node, ast.Subscript):
        return _string(node.slice) in LEGACY_FIELDS
    if isinstance(node, ast.Call) and _call_name(node.func) in {"get", "getattr"}:
        return any(_string(arg) in LEGACY_FIELDS for arg in node.args)
    return False


class _ModuleVisitor(ast.NodeVisitor):
    """Collects handler methods and authorization idioms of one module."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.http_methods: set[str] = set()
        self.enforcement_calls: list[EnforcementCall] = []
        self.legacy_checks: list[LegacyCheck] = []
        self.resource_annotation: str | None = None

    def visit_Module(self, node: ast.Module) -> None:
        for statement in node.body:
            if (
                isinstance(statement, ast.Assign)
                and len(statement.targets) == 1
                and isinstance(statement.targets[0], ast.Name)
                and statement.targets[0].id == RESOURCE_ANNOTATION
            ):
                self.resource_annotation = _string(statement.value)
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._collect_route_decorators(node.decorator_list)
        self.generic_visit(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._collect_route_decorators(node.decorator_list)
        self.generic_visit(node)

    def _collect_route_decorators(self, decorators: Sequence[ast.expr]) -> None:
        for decorator in decorators:
            if not isinstance(decorator, ast.Call):
                continue
            name = _call_name(decorator.func)
            if isinstance(decorator.func, ast.Attribute) and name in HTTP_METHODS:
                self.http_methods.add(name.upper())
            elif name == "api_route":
                self.http_methods.update(self._methods_keyword(decorator))

    def _methods_keyword(self, call: ast.Call) -> set[str]:
        for keyword in call.keywords:
            if keyword.arg == "methods" and isinstance(keyword.value, (ast.List, ast.Tuple, ast.Set)):
                return {
                    method.upper()
                    for method in (_string(e) for e in keyword.value.elts)
                    if method
                }
        return set()

    def visit_Call(self, node: ast.Call) -> None:
        name = _call_name(node.func)
        if name == "add_api_route":
            self.http_methods.update(self._methods_keyword(node))
        elif name in GATEWAY_FUNCTIONS or name in EVALUATOR_FUNCTIONS:
            self._record_enforcement(name, node)
        self.generic_visit(node)

    def _record_enforcement(self, name: str, node: ast.Call) -> None:
        arguments = [*node.args, *(keyword.value for keyword in node.keywords)]

        for argument in arguments:
            pairs = _pairs(argument)
            if pairs:
                for resource, action in pairs:
                    self.enforcement_calls.append(
                        EnforcementCall(
                            function=name,
                            resource=resource,
                            action=action,
                            line=node.lineno,
                        )
                    )
                return

        strings = [s for s in (_string(a) for a in arguments) if s is not None]
        if len(strings) >= 2:
            resource, action = strings[-2:]
            self.enforcement_calls.append(
                EnforcementCall(function=name, resource=resource, action=action, line=node.lineno)
            )
        else:
            self.enforcement_calls.append(EnforcementCall(function=name, line=node.lineno))

    def visit_Compare(self, node: ast.Compare) -> None:
        operands = [node.left, *node.comparators]
        for op, left, right in zip(node.ops, operands, operands[1:], strict=False):
            symbol = _OPERATORS.get(type(op))
            if symbol is None:
                continue

            if _is_legacy_reference(left):
                threshold = _integer(right)
            elif _is_legacy_reference(right):
                threshold = _integer(left)
                symbol = _MIRRORED[symbol]
            else:
                continue

            if threshold is None:
                continue

            self.legacy_checks.append(
                LegacyCheck(
                    expression=ast.get_source_segment(self.source, node) or ast.unparse(node),
                    operator=symbol,
                    threshold=threshold,
                    line=node.lineno,
                )
            )
        self.generic_visit(node)


@dataclass
class ScanResult:
    """Records and failures of one scan."""

    records: list[HandlerRecord] = field(default_factory=list)
    failures: list[ScanFailure] = field(default_factory=list)
    files_seen: int = 0


class HandlerScanner:
    """Classifies handler modules of a source tree.

    Attributes:
        catalog: Permission catalog used for grouping and validation
        allow_list: Path markers of modules that are public on purpose
        workers: Thread pool size; None lets the executor decide
    """

    def __init__(
        self,
        catalog: Iterable[CatalogEntry],
        allow_list: Iterable[str],
        workers: int | None = None,
        excluded_dirs: Iterable[str] = DEFAULT_EXCLUDED_DIRS,
    ) -> None:
        self.catalog = list(catalog)
        self.allow_list = {_normalize(marker) for marker in allow_list}
        self.workers = workers
        self.excluded_dirs = frozenset(excluded_dirs)
        self._catalog_keys = {entry.key for entry in self.catalog}
        self._resources = sorted({entry.resource for entry in self.catalog})

    def discover(self, source_root: Path) -> list[Path]:
        """List the Python files to scan, in a stable order."""
        if source_root.is_file():
            return [source_root]
        return sorted(
            path
            for path in source_root.rglob("*.py")
            if not self.excluded_dirs.intersection(path.relative_to(source_root).parts[:-1])
        )

    def scan(self, source_root: Path) -> ScanResult:
        """Scan every Python file under ``source_root``.

        Files that cannot be read or parsed are reported as failures and
        skipped; the rest of the run continues.
        """
        paths = self.discover(source_root)
        base = source_root.parent if source_root.is_file() else source_root
        result = ScanResult(files_seen=len(paths))

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            outcomes = list(executor.map(lambda p: self._scan_one(p, base), paths))

        for outcome in outcomes:
            if isinstance(outcome, ScanFailure):
                result.failures.append(outcome)
            elif outcome is not None:
                result.records.append(outcome)

        return result

    def _scan_one(self, path: Path, base: Path) -> HandlerRecord | ScanFailure | None:
        relative = path.relative_to(base).as_posix()
        try:
            source = path.read_text(encoding="utf-8")
            return self.scan_source(source, relative)
        except (
            OSError,
            UnicodeDecodeError,
            SyntaxError,
            ValueError,
            RecursionError,
            MemoryError,
        ) as exc:
            logger.warning("audit_file_skipped", path=relative, error=str(exc))
            return ScanFailure(path=relative, error=f"{type(exc).__name__}: {exc}")

    def scan_source(self, source: str, path: str) -> HandlerRecord | None:
        """Classify one module given its source text.

        Args:
            source: Python source code
            path: Path of the module relative to the source root

        Returns:
            The record, or None if the module exposes no HTTP handlers

        Raises:
            SyntaxError: If the source does not parse
        """
        tree = ast.parse(source, filename=path)
        visitor = _ModuleVisitor(source)
        visitor.visit(tree)

        if not visitor.http_methods:
            return None

        issues: list[IssueTag] = []
        if visitor.enforcement_calls:
            state = MigrationState.MIGRATED
        elif visitor.legacy_checks:
            state = MigrationState.LEGACY_ONLY
            issues.append(IssueTag.HARDCODED_PRIVILEGE_CHECK)
        elif self.is_allow_listed(path):
            state = MigrationState.PUBLIC
        else:
            state = MigrationState.UNPROTECTED
            issues.append(IssueTag.NO_PROTECTION)

        if any(
            call.key is not None and call.key not in self._catalog_keys
            for call in visitor.enforcement_calls
        ):
            issues.append(IssueTag.UNKNOWN_PERMISSION)

        return HandlerRecord(
            path=path,
            http_methods=sorted(visitor.http_methods),
            enforcement_calls=visitor.enforcement_calls,
            legacy_checks=visitor.legacy_checks,
            issues=issues,
            resource=visitor.resource_annotation or self.infer_resource(path),
            migration_state=state,
        )

    def is_allow_listed(self, path: str) -> bool:
        """Whether a whole path segment is an allow-list marker.

        ``api/auth/login.py`` is allow-listed, ``api/admin/local-auth/routes.py``
        is not. Health, favicon and logo markers also match as a prefix.
        """
        for segment in self._segments(path):
            if segment in self.allow_list:
                return True
            if any(
                segment.startswith(marker)
                for marker in self.allow_list & PREFIX_MARKERS
            ):
                return True
        return False

    def infer_resource(self, path: str) -> str:
        """Match path segments, outermost first, against catalog resources."""
        resources = {_normalize(resource): resource for resource in self._resources}
        singular = {_singular(name): resource for name, resource in resources.items()}

        for segment in self._segments(path):
            if segment in resources:
                return resources[segment]
            if _singular(segment) in singular:
                return singular[_singular(segment)]
        return UNCATEGORIZED

    @staticmethod
    def _segments(path: str) -> list[str]:
        parts = Path(path).with_suffix("").parts
        return [_normalize(part) for part in parts if part not in {".", ""}]
