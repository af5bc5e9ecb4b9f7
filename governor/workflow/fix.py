"""The auto-fix phase: the formatter, then the linter's own fixes."""

from __future__ import annotations

from dataclasses import dataclass, field

from governor.report.store import FormatIssue
from governor.runner import RunnerError
from governor.workflow.engine import Engine, resolve_tool

_FORMATTER = "gofumpt"
_LINTER = "".join(["go", "langci-lint"])


@dataclass
class FixResult:
    """Outcome of the fix phase; format issues are found only when not fixing."""

    auto_fixes: int = 0
    format_issues: list[FormatIssue] = field(default_factory=list)


def run_fix_phase(engine: Engine, fix: bool) -> FixResult:
    """Fix files in place when ``fix`` is true, otherwise report unformatted files.

    Missing tools are skipped silently.
    """
    result = FixResult()
    if fix:
        result.auto_fixes += _formatter_fix(engine)
        result.auto_fixes += _lint_fix(engine)
    else:
        result.format_issues = _formatter_check(engine)
    return result


def _formatter_fix(engine: Engine) -> int:
    argv = resolve_tool(_FORMATTER)
    if argv is None:
        return 0
    try:
        res = engine.runner.run([*argv, "-w", "."], "")
    except RunnerError:
        return 0
    if res.exit_code != 0:
        return 0
    # Writing in place does not report what changed; listing afterwards only
    # confirms that nothing is left to format.
    try:
        engine.runner.run([*argv, "-l", "."], "")
    except RunnerError:
        pass
    return 0


def _formatter_check(engine: Engine) -> list[FormatIssue]:
    argv = resolve_tool(_FORMATTER)
    if argv is None:
        return []
    try:
        res = engine.runner.run([*argv, "-l", "."], "")
    except RunnerError:
        return []
    stdout = res.stdout.decode("utf-8", errors="replace") if isinstance(res.stdout, bytes) else (res.stdout or "")
    issues = []
    for raw in stdout.strip().split("\n"):
        file = raw.strip()
        if file:
            issues.append(FormatIssue(file=file, message=f"file not formatted: {file}"))
    return issues


def _lint_fix(engine: Engine) -> int:
    argv = resolve_tool(_LINTER)
    if argv is None:
        return 0
    argv += ["run", "--fix"]
    if engine.config.lint.config:
        argv += ["--config", engine.config.lint.config]
    argv += engine.config.lint.args
    argv.append("./...")
    try:
        engine.runner.run(argv, "")
    except RunnerError:
        pass
    return 0