"""Finding unreachable functions with deadcode."""

from __future__ import annotations

import json
from typing import Any, Sequence

from governor.report.store import DeadFunc
from governor.runner import RunnerError
from governor.workflow.engine import Engine, ToolUnavailableError, resolve_tool

_SUMMARY_LIMIT = 20


def _obj(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError("expected an object")
    return value


def _list(value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError("expected a list")
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


def _base(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def parse_deadcode_output(data: bytes | str | None) -> list[DeadFunc]:
    """Parse ``deadcode -json`` output; unreadable output yields nothing."""
    if not data:
        return []
    try:
        funcs = []
        for raw_pkg in _list(json.loads(data)):
            pkg = _obj(raw_pkg)
            path = _str(pkg.get("Path"))
            for raw_func in _list(pkg.get("Funcs")):
                func = _obj(raw_func)
                position = _obj(func.get("Position"))
                funcs.append(
                    DeadFunc(
                        package=path,
                        file=_str(position.get("File")),
                        line=_int(position.get("Line")),
                        function=_str(func.get("Name")),
                    )
                )
        return funcs
    except (ValueError, TypeError):
        return []


def format_deadcode_summary(funcs: Sequence[DeadFunc]) -> str:
    """Format unreachable functions for display, listing at most twenty."""
    parts = [f"  Unreachable functions: {len(funcs)}\n"]
    parts.extend(
        f"    {f.package}.{f.function} ({_base(f.file)}:{f.line})\n" for f in funcs[:_SUMMARY_LIMIT]
    )
    if len(funcs) > _SUMMARY_LIMIT:
        parts.append(f"    ... and {len(funcs) - _SUMMARY_LIMIT} more\n")
    return "".join(parts)


def run_deadcode(engine: Engine, packages: Sequence[str] | None) -> list[DeadFunc]:
    """Run deadcode over ``packages``."""
    argv = resolve_tool("deadcode")
    if argv is None:
        raise ToolUnavailableError("deadcode")
    argv.append("-json")
    argv += engine.config.audit.deadcode.args
    argv += engine.resolve_packages(packages)
    try:
        result = engine.runner.run(argv, "")
    except RunnerError as exc:
        raise RunnerError(f"executing deadcode: {exc}") from exc
    return parse_deadcode_output(result.stdout)