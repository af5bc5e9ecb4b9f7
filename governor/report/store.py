"""Structured run results, their persistence interface and symbol queries."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Protocol


class Kind(str, Enum):
    """The type of a run."""

    CHECK = "check"
    AUDIT = "audit"

    def __str__(self) -> str:
        return self.value

    def __format__(self, spec: str) -> str:
        return format(self.value, spec)


class KindMismatchError(Exception):
    """Raised when a run is not of the expected kind."""


def _json(default: Any = None, *, key: str | None = None, omit: bool = False, factory=None):
    meta = {"key": key, "omit": omit}
    if factory is not None:
        return field(default_factory=factory, metadata=meta)
    return field(default=default, metadata=meta)


def _encode(obj: Any) -> dict:
    out = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if f.metadata.get("omit") and not value:
            continue
        out[f.metadata.get("key") or f.name] = list(value) if isinstance(value, list) else value
    return out


def _decode(cls: type, data: Any) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"expected an object for {cls.__name__}")
    kwargs = {}
    for f in fields(cls):
        key = f.metadata.get("key") or f.name
        if data.get(key) is not None:
            kwargs[f.name] = data[key]
    return cls(**kwargs)


@dataclass
class FormatIssue:
    """An unformatted file detected by gofumpt."""

    package: str = ""
    file: str = ""
    message: str = ""


@dataclass
class BuildError:
    """A compilation error."""

    package: str = ""
    file: str = ""
    line: int = 0
    col: int = 0
    message: str = ""


@dataclass
class TestFailure:
    """A failed test."""

    __test__ = False

    package: str = ""
    test: str = ""
    file: str = _json("", omit=True)
    line: int = _json(0, omit=True)
    message: str = ""
    output: str = _json("", omit=True)


@dataclass
class LintIssue:
    """A linter finding."""

    package: str = ""
    file: str = ""
    line: int = 0
    col: int = 0
    linter: str = ""
    message: str = ""


@dataclass
class StaticIssue:
    """A staticcheck finding."""

    package: str = ""
    file: str = ""
    line: int = 0
    col: int = 0
    end_line: int = _json(0, omit=True)
    end_col: int = _json(0, omit=True)
    code: str = ""
    severity: str = ""
    message: str = ""


@dataclass
class CoverageEntry:
    """Per-function test coverage, as a percentage."""

    package: str = ""
    file: str = ""
    function: str = ""
    coverage: float = 0.0


@dataclass
class ComplexityEntry:
    """Per-function cognitive complexity."""

    package: str = ""
    file: str = ""
    function: str = ""
    line: int = 0
    complexity: int = 0


@dataclass
class DeadFunc:
    """An unreachable function found by deadcode."""

    package: str = ""
    file: str = ""
    line: int = 0
    function: str = ""


@dataclass
class Duplicate:
    """A pair of duplicated code blocks found by dupl."""

    file1: str = _json("", key="file_1")
    start_line1: int = _json(0, key="start_line_1")
    end_line1: int = _json(0, key="end_line_1")
    file2: str = _json("", key="file_2")
    start_line2: int = _json(0, key="start_line_2")
    end_line2: int = _json(0, key="end_line_2")
    tokens: int = 0


@dataclass
class Vuln:
    """A vulnerability found by govulncheck."""

    id: str = ""
    summary: str = ""
    affected_package: str = ""
    fixed_version: str = _json("", omit=True)
    symbols: list[str] = _json(factory=list, omit=True)


_LISTS: tuple[tuple[str, type], ...] = (
    ("format_issues", FormatIssue),
    ("build_errors", BuildError),
    ("test_failures", TestFailure),
    ("lint_issues", LintIssue),
    ("static_issues", StaticIssue),
    ("coverage", CoverageEntry),
    ("complexity", ComplexityEntry),
    ("dead_funcs", DeadFunc),
    ("duplicates", Duplicate),
    ("vulns", Vuln),
)


@dataclass
class RunResult:
    """Structured output of a check or audit run."""

    id: str
    kind: Kind
    auto_fixes: int = 0
    format_issues: list[FormatIssue] = field(default_factory=list)
    build_errors: list[BuildError] = field(default_factory=list)
    test_failures: list[TestFailure] = field(default_factory=list)
    lint_issues: list[LintIssue] = field(default_factory=list)
    static_issues: list[StaticIssue] = field(default_factory=list)
    coverage: list[CoverageEntry] = field(default_factory=list)
    complexity: list[ComplexityEntry] = field(default_factory=list)
    dead_funcs: list[DeadFunc] = field(default_factory=list)
    duplicates: list[Duplicate] = field(default_factory=list)
    vulns: list[Vuln] = field(default_factory=list)

    def expect(self, want: Kind) -> None:
        """Raise KindMismatchError unless this run is of kind ``want``."""
        if self.kind != want:
            raise KindMismatchError(f"run {self.id} is a {self.kind} run, not a {Kind(want)} run")

    def to_dict(self) -> dict:
        """Return the JSON-ready form, leaving out empty optional fields."""
        out: dict[str, Any] = {"id": self.id, "kind": self.kind.value}
        if self.auto_fixes:
            out["auto_fixes"] = self.auto_fixes
        for name, _cls in _LISTS:
            items = getattr(self, name)
            if items:
                out[name] = [_encode(item) for item in items]
        return out

    @classmethod
    def from_dict(cls, data: Any) -> RunResult:
        """Build a RunResult from its JSON form."""
        if not isinstance(data, dict):
            raise ValueError("expected an object for RunResult")
        lists = {
            name: [_decode(item_cls, item) for item in data.get(name) or []]
            for name, item_cls in _LISTS
        }
        return cls(
            id=data.get("id") or "",
            kind=Kind(data.get("kind")),
            auto_fixes=data.get("auto_fixes") or 0,
            **lists,
        )


class Store(Protocol):
    """Persists and retrieves run results."""

    def save(self, result: RunResult) -> None:
        """Persist ``result`` under its ID."""
        ...

    def load(self, run_id: str) -> RunResult:
        """Return the result stored under ``run_id``."""
        ...


@dataclass
class Diagnostic:
    """A uniform view over every kind of finding."""

    source: str = ""
    package: str = ""
    file: str = ""
    line: int = 0
    col: int = 0
    symbol: str = ""
    detail: str = ""
    message: str = ""
    output: str = ""


def split_symbol(sym: str) -> tuple[str, str]:
    """Split ``example.com/foo.TestAdd`` into package path and symbol name."""
    last_slash = sym.rfind("/")
    after_slash = sym[last_slash + 1:]
    dot = after_slash.find(".")
    if dot < 0:
        return sym, ""
    return sym[:last_slash + 1 + dot], after_slash[dot + 1:]


def to_diagnostics(result: RunResult) -> list[Diagnostic]:
    """Flatten every finding of a run into Diagnostics."""
    out = [
        Diagnostic(source="format", package=f.package, file=f.file, message=f.message)
        for f in result.format_issues
    ]
    out.extend(
        Diagnostic(source="build", package=b.package, file=b.file, line=b.line, col=b.col, message=b.message)
        for b in result.build_errors
    )
    out.extend(
        Diagnostic(
            source="test", package=t.package, file=t.file, line=t.line,
            symbol=t.test, message=t.message, output=t.output,
        )
        for t in result.test_failures
    )
    out.extend(
        Diagnostic(
            source="lint", package=li.package, file=li.file, line=li.line,
            col=li.col, detail=li.linter, message=li.message,
        )
        for li in result.lint_issues
    )
    out.extend(
        Diagnostic(
            source="staticcheck", package=s.package, file=s.file, line=s.line,
            col=s.col, detail=s.code, message=s.message,
        )
        for s in result.static_issues
    )
    out.extend(
        Diagnostic(
            source="coverage", package=c.package, file=c.file, symbol=c.function,
            message=f"{c.coverage:.1f}% coverage",
        )
        for c in result.coverage
    )
    out.extend(
        Diagnostic(
            source="complexity", package=c.package, file=c.file, line=c.line,
            symbol=c.function, message=f"cognitive complexity {c.complexity}",
        )
        for c in result.complexity
    )
    out.extend(
        Diagnostic(
            source="deadcode", package=d.package, file=d.file, line=d.line,
            symbol=d.function, message="unreachable function",
        )
        for d in result.dead_funcs
    )
    out.extend(
        Diagnostic(
            source="dupl", file=d.file1, line=d.start_line1,
            message=f"duplicate of {d.file2}:{d.start_line2}-{d.end_line2} ({d.tokens} tokens)",
        )
        for d in result.duplicates
    )
    for v in result.vulns:
        message = v.summary
        if v.fixed_version:
            message += f" (fixed in {v.fixed_version})"
        out.append(Diagnostic(source="vulncheck", package=v.affected_package, detail=v.id, message=message))
    return out


def by_package(result: RunResult, pkg: str) -> list[Diagnostic]:
    """Return all diagnostics for the package import path ``pkg``."""
    return [d for d in to_diagnostics(result) if d.package == pkg]


def by_symbol(result: RunResult, sym: str) -> list[Diagnostic]:
    """Return diagnostics for a package path or a ``package.Symbol`` reference."""
    pkg, name = split_symbol(sym)
    if not name:
        return by_package(result, pkg)
    return [d for d in to_diagnostics(result) if d.package == pkg and d.symbol == name]