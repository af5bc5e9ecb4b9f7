"""Measuring cognitive complexity with gocognit."""

from __future__ import annotations

import re
from typing import Sequence

from governor.report.store import ComplexityEntry
from governor.runner import RunnerError
from governor.workflow.engine import Engine, ToolUnavailableError, resolve_tool

_INTEGER = re.compile(r"[+-]?[0-9]+")
_BUCKETS = (
    ("1-5", 1, 5),
    ("6-10", 6, 10),
    ("11-15", 11, 15),
    ("16+", 16, (1 << 31) - 1),
)


def _atoi(text: str) -> int | None:
    return int(text) if _INTEGER.fullmatch(text) else None


def parse_position(pos: str) -> tuple[str, int]:
    """Split ``file:line:col`` into the file and the line (0 if unreadable)."""
    parts = pos.split(":")
    if len(parts) < 2:
        return pos, 0
    return parts[0], _atoi(parts[1]) or 0


def parse_gocognit_output(data: bytes | str | None) -> list[ComplexityEntry]:
    """Parse gocognit lines of the form ``<complexity> <package> <function> <pos>``."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    entries = []
    for raw in (data or "").split("\n"):
        fields = raw.split()
        if len(fields) < 4:
            continue
        complexity = _atoi(fields[0])
        if complexity is None:
            continue
        file, line = parse_position(fields[-1])
        entries.append(
            ComplexityEntry(
                package=fields[1],
                file=file,
                function=" ".join(fields[2:-1]),
                line=line,
                complexity=complexity,
            )
        )
    return entries


def format_complexity_summary(entries: Sequence[ComplexityEntry]) -> str:
    """Format complexity entries: count, highest and a distribution by bucket."""
    parts = [f"  Functions analysed: {len(entries)}\n"]
    if not entries:
        return "".join(parts)

    highest = max(entries, key=lambda e: e.complexity)
    parts.append(f"  Highest: {highest.package}.{highest.function} ({highest.complexity})\n")

    buckets = []
    for label, low, high in _BUCKETS:
        count = sum(1 for e in entries if low <= e.complexity <= high)
        buckets.append(f" {count} ({label})")
    parts.append("  Distribution:" + ",".join(buckets) + "\n")
    return "".join(parts)


def run_complexity(engine: Engine, packages: Sequence[str] | None) -> list[ComplexityEntry]:
    """Run gocognit over ``packages``."""
    argv = resolve_tool("gocognit")
    if argv is None:
        raise ToolUnavailableError("gocognit")
    argv += engine.config.audit.complexity.args
    argv += engine.resolve_packages(packages)
    try:
        result = engine.runner.run(argv, "")
    except RunnerError as exc:
        raise RunnerError(f"executing gocognit: {exc}") from exc
    return parse_gocognit_output(result.stdout)