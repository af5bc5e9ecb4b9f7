"""The check pipeline: fix phase, then test, lint and staticcheck, stopping on failure."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Callable, Sequence

from governor.report.store import BuildError, Kind, LintIssue, RunResult, TestFailure
from governor.runner import RunnerError
from governor.workflow.engine import Engine, ToolUnavailableError, derive_package_from_file
from governor.workflow.fix import run_fix_phase
from governor.workflow.gotest import run_test
from governor.workflow.lint import run_lint
from governor.workflow.staticcheck import run_staticcheck

NO_FAILURE = -1
"""``failed_idx`` when every step passed."""

FORMAT_FAILURE = -2
"""``failed_idx`` when formatting issues stopped the run before any step."""

_STEP_ERRORS = (RunnerError, OSError, RuntimeError, ValueError)


@dataclass
class StepResult:
    """Outcome of one check step: pass, fail, skipped or unavailable."""

    name: str
    status: str
    detail: str = ""
    output: str = ""


@dataclass
class CheckResult:
    """Full outcome of a check run."""

    run_result: RunResult
    steps: list[StepResult] = field(default_factory=list)
    failed_idx: int = NO_FAILURE


def _test_step(engine: Engine, name: str, pkgs: list[str], rr: RunResult) -> StepResult:
    try:
        summary = run_test(engine, pkgs)
    except _STEP_ERRORS as exc:
        return StepResult(name, "fail", output=str(exc))
    if summary.status != "FAIL":
        return StepResult(name, "pass")
    rr.test_failures.extend(
        TestFailure(package=f.package, test=f.test, message=first_line(f.output), output=f.output)
        for f in summary.errors
    )
    rr.build_errors.extend(
        BuildError(package=be.import_path, message=be.output) for be in summary.build_errors
    )
    return StepResult(name, "fail", output=str(summary))


def _lint_step(engine: Engine, name: str, pkgs: list[str], rr: RunResult) -> StepResult:
    try:
        summary = run_lint(engine, pkgs)
    except ToolUnavailableError as exc:
        return StepResult(name, "unavailable", detail=str(exc))
    except _STEP_ERRORS as exc:
        return StepResult(name, "fail", output=str(exc))
    if not summary.issues:
        return StepResult(name, "pass")
    rr.lint_issues.extend(
        LintIssue(file=i.file, line=i.line, col=i.column, linter=i.linter, message=i.message)
        for i in summary.issues
    )
    return StepResult(name, "fail", output=str(summary))


def _staticcheck_step(engine: Engine, name: str, pkgs: list[str], rr: RunResult) -> StepResult:
    try:
        result = run_staticcheck(engine, pkgs)
    except ToolUnavailableError as exc:
        return StepResult(name, "unavailable", detail=str(exc))
    except _STEP_ERRORS as exc:
        return StepResult(name, "fail", output=str(exc))
    if not result.issues:
        return StepResult(name, "pass")
    rr.static_issues = list(result.issues)
    return StepResult(name, "fail", output=str(result))


_STEPS: dict[str, Callable[[Engine, str, list[str], RunResult], StepResult]] = {
    "test": _test_step,
    "lint": _lint_step,
    "staticcheck": _staticcheck_step,
}


def run_check(engine: Engine, packages: Sequence[str] | None, fix: bool) -> CheckResult:
    """Run the fix phase and then each configured check step until one fails.

    Without ``fix``, any formatting issue fails the run before the steps with
    ``failed_idx`` set to FORMAT_FAILURE.
    """
    rr = RunResult(id=str(uuid.uuid4()), kind=Kind.CHECK)
    pkgs = engine.resolve_packages(packages)

    fixed = run_fix_phase(engine, fix)
    rr.auto_fixes = fixed.auto_fixes
    rr.format_issues = list(fixed.format_issues)
    if not fix and rr.format_issues:
        return CheckResult(run_result=rr, failed_idx=FORMAT_FAILURE)

    steps = [StepResult(name, "skipped") for name in engine.config.check_steps()]
    failed_idx = NO_FAILURE
    for index, step in enumerate(steps):
        run_step = _STEPS.get(step.name)
        if run_step is None:
            outcome = StepResult(step.name, "fail", output=f"unknown step: {step.name}")
        else:
            outcome = run_step(engine, step.name, pkgs, rr)
        steps[index] = outcome
        if outcome.status in ("fail", "unavailable"):
            failed_idx = index
            break

    return CheckResult(run_result=rr, steps=steps, failed_idx=failed_idx)


def first_line(text: str) -> str:
    """Return the first non-empty trimmed line that is not test framework boilerplate."""
    for raw in text.split("\n"):
        line = raw.strip()
        if line and not line.startswith("=== RUN") and not line.startswith("--- FAIL"):
            return line
    return ""


def _count_by(packages: list[str]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for pkg in packages:
        counts[pkg] = counts.get(pkg, 0) + 1
    return counts


def format_failure_symbols(result: RunResult) -> list[str]:
    """Build Go-qualified references for each failure, summarised per package."""
    out = [
        f"{f.package}.{f.test} — {f.message or 'test failed'}" for f in result.test_failures
    ]
    out.extend(
        f"{pkg} — {count} build errors"
        for pkg, count in _count_by([b.package for b in result.build_errors]).items()
    )
    lint_pkgs = [li.package or derive_package_from_file(li.file) for li in result.lint_issues]
    out.extend(f"{pkg} — {count} lint issues" for pkg, count in _count_by(lint_pkgs).items())
    out.extend(
        f"{pkg} — {count} staticcheck issues"
        for pkg, count in _count_by([s.package for s in result.static_issues]).items()
    )
    return out