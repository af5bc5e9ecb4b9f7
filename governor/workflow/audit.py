"""The audit pipeline: every configured check runs, failures do not stop it."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from governor.report.store import Kind, RunResult
from governor.runner import RunnerError
from governor.workflow.complexity import format_complexity_summary, run_complexity
from governor.workflow.coverage import format_coverage_summary, run_coverage
from governor.workflow.deadcode import format_deadcode_summary, run_deadcode
from governor.workflow.dupl import format_dupl_summary, run_dupl
from governor.workflow.engine import Engine, ToolUnavailableError
from governor.workflow.vulncheck import format_vulncheck_summary, run_vulncheck

_STEP_ERRORS = (RunnerError, OSError, RuntimeError, ValueError)


@dataclass
class AuditStepResult:
    """Outcome of one audit step: done, error, unavailable or skipped."""

    name: str
    status: str
    detail: str = ""
    output: str = ""


@dataclass
class AuditResult:
    """Full outcome of an audit run."""

    run_result: RunResult
    steps: list[AuditStepResult] = field(default_factory=list)


_Step = tuple[Callable[[Engine, Sequence[str]], list[Any]], str, Callable[[Sequence[Any]], str]]

_AUDIT_STEPS: dict[str, _Step] = {
    "coverage": (run_coverage, "coverage", format_coverage_summary),
    "complexity": (run_complexity, "complexity", format_complexity_summary),
    "deadcode": (run_deadcode, "dead_funcs", format_deadcode_summary),
    "dupl": (run_dupl, "duplicates", format_dupl_summary),
    "vulncheck": (run_vulncheck, "vulns", format_vulncheck_summary),
}


def _run_step(engine: Engine, name: str, pkgs: list[str], rr: RunResult) -> AuditStepResult:
    step = _AUDIT_STEPS.get(name)
    if step is None:
        return AuditStepResult(name, "error", detail=f"unknown step: {name}")
    run, attribute, summarise = step
    try:
        items = run(engine, pkgs)
    except ToolUnavailableError as exc:
        return AuditStepResult(name, "unavailable", detail=str(exc))
    except _STEP_ERRORS as exc:
        return AuditStepResult(name, "error", detail=str(exc))
    setattr(rr, attribute, items)
    return AuditStepResult(name, "done", output=summarise(items))


def run_audit(engine: Engine, packages: Sequence[str] | None) -> AuditResult:
    """Run every configured audit step and collect the results."""
    rr = RunResult(id=str(uuid.uuid4()), kind=Kind.AUDIT)
    pkgs = engine.resolve_packages(packages)
    steps = [_run_step(engine, name, pkgs, rr) for name in engine.config.audit_steps()]
    return AuditResult(run_result=rr, steps=steps)