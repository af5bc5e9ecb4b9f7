"""Running ``go test -json`` and summarising its event stream."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Sequence

from governor.runner import RunnerError
from governor.workflow.engine import Engine

MAX_FAILURE_LINES = 20
"""Maximum number of output lines shown per failure."""


@dataclass
class PackageBuildError:
    """A build failure reported by ``go test -json``."""

    import_path: str = ""
    output: str = ""


@dataclass
class FailedTest:
    """A single failed test reported by ``go test -json``."""

    test: str = ""
    package: str = ""
    output: str = ""


@dataclass
class TestSummary:
    """Parsed test results."""

    __test__ = False

    status: str = "PASS"
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    build_errors: list[PackageBuildError] = field(default_factory=list)
    errors: list[FailedTest] = field(default_factory=list)

    def __str__(self) -> str:
        parts = [f"Status: {self.status}\n", "\n"]

        if self.status == "PASS":
            line = f"All {self.total} tests passed"
            if self.skipped > 0:
                line += f" ({self.skipped} skipped)"
            parts.append(line + ".\n")
            return "".join(parts)

        if self.build_errors:
            parts.append("Build errors:\n")
            for be in self.build_errors:
                parts.append(f"  {be.import_path}:\n")
                for line in truncate_lines(be.output, MAX_FAILURE_LINES).split("\n"):
                    parts.append(f"    {line}\n")
            parts.append("\n")

        if self.failed > 0:
            parts.append(f"Failed {self.failed} of {self.total} tests.\n\n")
            by_package: dict[str, list[FailedTest]] = {}
            for failure in self.errors:
                by_package.setdefault(failure.package, []).append(failure)
            for pkg, failures in by_package.items():
                parts.append(f"FAIL {pkg} ({len(failures)} failures):\n")
                for failure in failures:
                    output = truncate_lines(failure.output, MAX_FAILURE_LINES)
                    parts.append(f"  - {failure.test}\n")
                    if output:
                        parts.extend(f"      {line}\n" for line in output.split("\n"))
                parts.append("\n")
        elif not self.build_errors:
            parts.append(f"Failed {self.failed} of {self.total} tests.\n\n")

        return "".join(parts)


_EVENT_KEYS = ("Action", "Package", "Test", "Output", "ImportPath")


def _decode_event(line: str) -> dict[str, str] | None:
    try:
        raw = json.loads(line)
    except ValueError:
        return None
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        return None
    event = {}
    for key in _EVENT_KEYS:
        value = raw.get(key)
        if value is None:
            value = ""
        if not isinstance(value, str):
            return None
        event[key] = value
    return event


def _text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def parse_test_output(data: bytes | str | None) -> TestSummary:
    """Summarise the JSON event stream of ``go test -json``."""
    summary = TestSummary()
    outputs: dict[tuple[str, str], list[str]] = {}
    failed_tests: dict[tuple[str, str], None] = {}
    build_outputs: dict[str, list[str]] = {}
    failed_builds: dict[str, None] = {}

    for raw_line in _text(data).split("\n"):
        line = raw_line.strip()
        if not line:
            continue
        ev = _decode_event(line)
        if ev is None:
            continue

        action, pkg, test = ev["Action"], ev["Package"], ev["Test"]
        key = (pkg, test)

        if action == "output":
            if test:
                outputs.setdefault(key, []).append(ev["Output"])
        elif action == "pass":
            if test:
                summary.total += 1
                summary.passed += 1
        elif action == "fail":
            if test:
                summary.total += 1
                summary.failed += 1
                summary.status = "FAIL"
                failed_tests[key] = None
            elif pkg:
                summary.status = "FAIL"
        elif action == "skip":
            if test:
                summary.total += 1
                summary.skipped += 1
        elif action == "build-output":
            import_path = ev["ImportPath"] or pkg
            if import_path:
                build_outputs.setdefault(import_path, []).append(ev["Output"])
        elif action == "build-fail":
            import_path = ev["ImportPath"] or pkg
            if import_path:
                failed_builds[import_path] = None
            summary.status = "FAIL"

    summary.errors = [
        FailedTest(test=test, package=pkg, output="".join(outputs.get((pkg, test), [])))
        for pkg, test in failed_tests
    ]
    summary.build_errors = [
        PackageBuildError(
            import_path=import_path,
            output="".join(build_outputs.get(import_path, [])).rstrip("\n"),
        )
        for import_path in failed_builds
    ]
    return summary


def truncate_lines(text: str, max_lines: int) -> str:
    """Keep at most ``max_lines`` lines, noting how many were dropped."""
    lines = text.rstrip("\n").split("\n")
    if len(lines) <= max_lines:
        return "\n".join(lines)
    kept = "\n".join(lines[:max_lines])
    return f"{kept}\n... ({len(lines) - max_lines} more lines)"


def run_test(engine: Engine, packages: Sequence[str] | None) -> TestSummary:
    """Run ``go test -json`` over ``packages`` and summarise the result."""
    argv = ["go", "test", "-json", *engine.resolve_packages(packages), *engine.config.test.args]
    try:
        result = engine.runner.run(argv, "")
    except RunnerError as exc:
        raise RunnerError(f"executing go test: {exc}") from exc
    return parse_test_output(result.stdout)