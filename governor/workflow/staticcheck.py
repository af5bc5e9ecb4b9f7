"""Running staticcheck and parsing its JSON lines output."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Sequence

from governor.report.store import StaticIssue
from governor.runner import RunnerError
from governor.workflow.engine import (
    Engine,
    ToolUnavailableError,
    derive_package_from_file,
    resolve_tool,
)


@dataclass
class StaticcheckResult:
    """Parsed output of a staticcheck run."""

    issues: list[StaticIssue] = field(default_factory=list)

    def __str__(self) -> str:
        if not self.issues:
            return "Status: OK\n\nNo staticcheck issues found.\n"
        parts = [f"Status: {len(self.issues)} issues found\n", "\n"]
        parts.extend(
            f"{i.file}:{i.line}:{i.col} ({i.code}): {i.message}\n" for i in self.issues
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


def _issue(line: str) -> StaticIssue | None:
    try:
        event = _obj(json.loads(line))
        location = _obj(event.get("location"))
        end = _obj(event.get("end"))
        code = _str(event.get("code"))
        file = _str(location.get("file"))
        issue = StaticIssue(
            package=derive_package_from_file(file),
            file=file,
            line=_int(location.get("line")),
            col=_int(location.get("column")),
            end_line=_int(end.get("line")),
            end_col=_int(end.get("column")),
            code=code,
            severity=_str(event.get("severity")),
            message=_str(event.get("message")),
        )
    except (ValueError, TypeError):
        return None
    return issue if code else None


def parse_staticcheck_output(data: bytes | str | None) -> StaticcheckResult:
    """Parse ``staticcheck -f json`` output, one event per line."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    issues = []
    for raw in (data or "").split("\n"):
        line = raw.strip()
        if not line:
            continue
        issue = _issue(line)
        if issue is not None:
            issues.append(issue)
    return StaticcheckResult(issues=issues)


def run_staticcheck(engine: Engine, packages: Sequence[str]) -> StaticcheckResult:
    """Run staticcheck over already resolved ``packages``."""
    argv = resolve_tool("staticcheck")
    if argv is None:
        raise ToolUnavailableError("staticcheck")
    argv += ["-f", "json"]
    if engine.config.staticcheck.checks:
        argv += ["-checks", ",".join(engine.config.staticcheck.checks)]
    argv += engine.config.staticcheck.args
    argv += list(packages or [])
    try:
        result = engine.runner.run(argv, "")
    except RunnerError as exc:
        raise RunnerError(f"executing staticcheck: {exc}") from exc
    return parse_staticcheck_output(result.stdout)