"""Running dupl and parsing its plumbing output."""

from __future__ import annotations

import re
from typing import Sequence

from governor.report.store import Duplicate
from governor.runner import RunnerError
from governor.workflow.engine import Engine, ToolUnavailableError, resolve_tool

_DUPL_LINE = re.compile(r"^(.+):(\d+)-(\d+)$")
_SUMMARY_LIMIT = 10


def _group_duplicates(group: list[tuple[str, int, int]], tokens: int) -> list[Duplicate]:
    first_file, first_start, first_end = group[0]
    return [
        Duplicate(
            file1=first_file, start_line1=first_start, end_line1=first_end,
            file2=file, start_line2=start, end_line2=end, tokens=tokens,
        )
        for file, start, end in group[1:]
    ]


def parse_dupl_output(data: bytes | str | None, threshold: int) -> list[Duplicate]:
    """Parse ``dupl -plumbing`` output; blank lines separate groups of clones.

    Each group yields one Duplicate pairing its first block with every other.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    duplicates: list[Duplicate] = []
    group: list[tuple[str, int, int]] = []
    for raw in (data or "").split("\n"):
        line = raw.strip()
        if not line:
            if len(group) >= 2:
                duplicates.extend(_group_duplicates(group, threshold))
            group = []
            continue
        match = _DUPL_LINE.match(line)
        if match is None:
            continue
        group.append((match.group(1), int(match.group(2)), int(match.group(3))))
    if len(group) >= 2:
        duplicates.extend(_group_duplicates(group, threshold))
    return duplicates


def format_dupl_summary(duplicates: Sequence[Duplicate]) -> str:
    """Format duplicate blocks for display, listing at most ten."""
    parts = [f"  Duplicate blocks: {len(duplicates)}\n"]
    for d in duplicates[:_SUMMARY_LIMIT]:
        parts.append(
            f"    {d.file1}:{d.start_line1}-{d.end_line1} <> "
            f"{d.file2}:{d.start_line2}-{d.end_line2} ({d.tokens} tokens)\n"
        )
    if len(duplicates) > _SUMMARY_LIMIT:
        parts.append(f"    ... and {len(duplicates) - _SUMMARY_LIMIT} more\n")
    return "".join(parts)


def run_dupl(engine: Engine, packages: Sequence[str] | None) -> list[Duplicate]:
    """Run dupl over the workspace; it works on files, so ``packages`` is unused."""
    argv = resolve_tool("dupl")
    if argv is None:
        raise ToolUnavailableError("dupl")
    threshold = engine.config.dupl_threshold()
    argv += ["-plumbing", "-t", str(threshold)]
    argv += engine.config.audit.dupl.args
    argv.append(".")
    try:
        result = engine.runner.run(argv, "")
    except RunnerError as exc:
        raise RunnerError(f"executing dupl: {exc}") from exc
    return parse_dupl_output(result.stdout, threshold)