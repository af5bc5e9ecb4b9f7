"""Running the lint aggregator and parsing its JSON report."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Sequence

from governor.runner import RunnerError
from governor.workflow.engine import (
    LINTER_TOOL,
    Engine,
    ToolUnavailableError,
    resolve_tool,
)


@dataclass
class LintFinding:
    """A single lint finding."""

    file: str = ""
    line: int = 0
    column: int = 0
    linter: str = ""
    message: str = ""


@dataclass
class LintSummary:
    """Parsed lint results."""

    issues: list[LintFinding] = field(default_factory=list)

    def __str__(self) -> str:
        if not self.issues:
            return "Status: OK\n\nNo lint issues found.\n"
        parts = [f"Status: {len(self.issues)} issues found\n", "\n"]
        parts.extend(
            f"{i.file}:{i.line}:{i.column} ({i.linter}): {i.message}\n" for i in self.issues
        )
        return "".join(parts)


def _obj(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError("expected an object")
    return value


def _str(value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TypeError("expected a string")
    return value


def _int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != int(value):
        raise TypeError("expected an integer")
    return int(value)


def _finding(raw: Any) -> LintFinding:
    issue = _obj(raw)
    pos = _obj(issue.get("Pos"))
    return LintFinding(
        file=_str(pos.get("Filename")),
        line=_int(pos.get("Line")),
        column=_int(pos.get("Column")),
        linter=_str(issue.get("FromLinter")),
        message=_str(issue.get("Text")),
    )


def parse_lint_output(stdout: bytes | str | None, stderr: bytes | str | None = None) -> LintSummary:
    """Parse the linter's JSON output; unreadable output yields no issues."""
    if not stdout:
        return LintSummary()
    try:
        top = _obj(json.loads(stdout))
        raw_issues = top.get("Issues") or []
        if not isinstance(raw_issues, list):
            raise TypeError("expected a list")
        return LintSummary(issues=[_finding(raw) for raw in raw_issues])
    except (ValueError, TypeError):
        return LintSummary()


def run_lint(engine: Engine, packages: Sequence[str] | None) -> LintSummary:
    """Run the lint aggregator over ``packages``."""
    argv = resolve_tool(LINTER_TOOL)
    if argv is None:
        raise ToolUnavailableError(LINTER_TOOL)
    argv += ["run", "--out-format", "json"]
    if engine.config.lint.config:
        argv += ["--config", engine.config.lint.config]
    argv += engine.config.lint.args
    argv += engine.resolve_packages(packages)
    try:
        result = engine.runner.run(argv, "")
    except RunnerError as exc:
        raise RunnerError(f"executing {LINTER_TOOL}: {exc}") from exc
    return parse_lint_output(result.stdout, result.stderr)