"""Collecting per-function test coverage with ``go test -coverprofile``."""

from __future__ import annotations

import os
import re
import tempfile
from dataclasses import dataclass
from typing import Sequence

from governor.report.store import CoverageEntry
from governor.runner import RunnerError
from governor.workflow.engine import Engine, derive_package_from_file

_COVER_FUNC_LINE = re.compile(r"^(.+):(\d+):\s+(\S+)\s+(\d+\.\d+)%$", re.ASCII)
_UNCOVERED_LIMIT = 10


@dataclass
class CoverageSummary:
    """Aggregated coverage figures; ``total`` is the mean function coverage."""

    packages: int = 0
    functions: int = 0
    total: float = 0.0


def _base(path: str) -> str:
    if not path:
        return "."
    stripped = path.rstrip("/")
    if not stripped:
        return "/"
    return stripped.rsplit("/", 1)[-1]


def parse_cover_func(data: bytes | str | None) -> list[CoverageEntry]:
    """Parse ``go tool cover -func`` output, leaving out the total line."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    entries = []
    for raw in (data or "").split("\n"):
        line = raw.strip()
        if not line:
            continue
        match = _COVER_FUNC_LINE.match(line)
        if match is None:
            continue
        file = match.group(1)
        if file == "total":
            continue
        entries.append(
            CoverageEntry(
                package=derive_package_from_file(file),
                file=file,
                function=match.group(3),
                coverage=float(match.group(4)),
            )
        )
    return entries


def summarise_coverage(entries: Sequence[CoverageEntry]) -> CoverageSummary:
    """Count packages and functions and average their coverage."""
    if not entries:
        return CoverageSummary()
    return CoverageSummary(
        packages=len({e.package for e in entries}),
        functions=len(entries),
        total=sum(e.coverage for e in entries) / len(entries),
    )


def format_coverage_summary(entries: Sequence[CoverageEntry]) -> str:
    """Format coverage for display, listing up to ten uncovered functions."""
    summary = summarise_coverage(entries)
    parts = [
        f"  Packages: {summary.packages}\n",
        f"  Functions: {summary.functions}\n",
        f"  Average function coverage: {summary.total:.1f}%\n",
    ]
    uncovered = [
        f"    {e.package}.{e.function} ({_base(e.file)})" for e in entries if e.coverage == 0
    ]
    if uncovered:
        parts.append(f"  Uncovered functions: {len(uncovered)}\n")
        parts.extend(f"{line}\n" for line in uncovered[:_UNCOVERED_LIMIT])
        if len(uncovered) > _UNCOVERED_LIMIT:
            parts.append(f"    ... and {len(uncovered) - _UNCOVERED_LIMIT} more\n")
    return "".join(parts)


def run_coverage(engine: Engine, packages: Sequence[str] | None) -> list[CoverageEntry]:
    """Run the tests with a cover profile and read per-function coverage from it."""
    pkgs = engine.resolve_packages(packages)
    try:
        handle, cover_file = tempfile.mkstemp(prefix="governor-cover-", suffix=".out")
        os.close(handle)
    except OSError as exc:
        raise RuntimeError(f"creating cover profile: {exc}") from exc

    try:
        argv = ["go", "test", "-coverprofile", cover_file, *engine.config.audit.coverage.args, *pkgs]
        try:
            result = engine.runner.run(argv, "")
        except RunnerError as exc:
            raise RunnerError(f"executing go test -coverprofile: {exc}") from exc
        if result.exit_code != 0:
            stderr = result.stderr.decode("utf-8", errors="replace") if isinstance(result.stderr, bytes) else result.stderr
            raise RuntimeError(
                f"go test -coverprofile failed (exit {result.exit_code}): {stderr}"
            )

        try:
            cover = engine.runner.run(["go", "tool", "cover", "-func", cover_file], "")
        except RunnerError as exc:
            raise RunnerError(f"executing go tool cover -func: {exc}") from exc
        return parse_cover_func(cover.stdout)
    finally:
        try:
            os.remove(cover_file)
        except OSError:
            pass