"""Tool handlers of the server: workspace, check, audit and inspect."""

from __future__ import annotations

import contextlib
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from governor.report.disk import StoreError
from governor.report.store import Diagnostic, RunResult, Store, by_symbol
from governor.runner import RunnerError
from governor.workflow.audit import AuditStepResult, run_audit
from governor.workflow.check import FORMAT_FAILURE, StepResult, format_failure_symbols, run_check
from governor.workflow.engine import Engine

if TYPE_CHECKING:
    from governor.server.gopls import GoplsProxy

SERVER_NAME = "governor"
VERSION = "v0.0.1"

_WORKFLOW_ERRORS = (RunnerError, OSError, RuntimeError, ValueError)
_LOAD_ERRORS = (StoreError, OSError, LookupError, ValueError)


@dataclass
class ToolResult:
    """The content of a tool call result and whether it reports an error."""

    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def of_text(cls, text: str, is_error: bool = False) -> ToolResult:
        """Build a result holding a single text item."""
        return cls(content=[{"type": "text", "text": text}], is_error=is_error)

    @property
    def text(self) -> str:
        """All text items joined by newlines."""
        return "\n".join(
            item["text"]
            for item in self.content
            if item.get("type") == "text" and isinstance(item.get("text"), str)
        )

    def to_dict(self) -> dict[str, Any]:
        """The result in its wire form."""
        data: dict[str, Any] = {"content": list(self.content)}
        if self.is_error:
            data["isError"] = True
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ToolResult:
        """Read a result from its wire form."""
        if not data:
            return cls()
        raw_content = data.get("content") or []
        content = [dict(item) for item in raw_content if isinstance(item, Mapping)]
        return cls(content=content, is_error=bool(data.get("isError", False)))


def _text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _kind_text(kind: Any) -> str:
    return str(getattr(kind, "value", kind))


def _module_field(info: Mapping[str, Any], key: str) -> str:
    value = info.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key} is not a string")
    return value


@dataclass
class Handler:
    """Shared dependencies of the tool handlers."""

    engine: Engine
    store: Store
    gopls: GoplsProxy | None = None

    def workspace(self) -> ToolResult:
        """Summarise the module and list its packages."""
        parts: list[str] = []
        if self.gopls is not None:
            info = self.gopls.call_go_workspace()
            if info:
                parts.append(f"{info}\n\n--- Governor ---\n\n")

        runner = self.engine.runner
        try:
            mod = runner.run(["go", "list", "-m", "-json"], "")
        except RunnerError as exc:
            return ToolResult.of_text(f"Failed to query module info: {exc}", is_error=True)
        if mod.exit_code != 0:
            return ToolResult.of_text(
                f"go list -m -json failed:\n{_text(mod.stderr)}", is_error=True
            )

        try:
            info = json.loads(_text(mod.stdout))
            if not isinstance(info, dict):
                raise ValueError("module info is not an object")
            path = _module_field(info, "Path")
            directory = _module_field(info, "Dir")
            go_version = _module_field(info, "GoVersion")
        except ValueError as exc:
            return ToolResult.of_text(f"Failed to parse module info: {exc}", is_error=True)

        parts.append(f"Module: {path}\n")
        if go_version:
            parts.append(f"Go: {go_version}\n")
        parts.append(f"Directory: {directory}\n\n")

        try:
            listing = runner.run(["go", "list", "./..."], "")
        except RunnerError:
            listing = None
        if listing is None or listing.exit_code != 0:
            parts.append("Packages: (failed to list)\n")
        else:
            pkgs = _text(listing.stdout).strip().split("\n")
            parts.append(f"Packages ({len(pkgs)}):\n")
            parts.extend(f"  {pkg}\n" for pkg in pkgs if pkg)

        return ToolResult.of_text("".join(parts))

    def check(self, packages: Sequence[str] | None = None, fix: bool | None = None) -> ToolResult:
        """Run the check pipeline; ``fix`` defaults to true."""
        fix_enabled = True if fix is None else fix
        try:
            result = run_check(self.engine, packages, fix_enabled)
        except _WORKFLOW_ERRORS as exc:
            return ToolResult.of_text(f"check failed: {exc}", is_error=True)

        with contextlib.suppress(Exception):
            self.store.save(result.run_result)

        if result.failed_idx == FORMAT_FAILURE:
            return ToolResult.of_text(format_check_with_format_failure(result.run_result))
        return ToolResult.of_text(
            format_check(result.run_result.id, result.run_result, result.steps, result.failed_idx)
        )

    def audit(self, packages: Sequence[str] | None = None) -> ToolResult:
        """Run the audit pipeline."""
        try:
            result = run_audit(self.engine, packages)
        except _WORKFLOW_ERRORS as exc:
            return ToolResult.of_text(f"audit failed: {exc}", is_error=True)

        with contextlib.suppress(Exception):
            self.store.save(result.run_result)

        return ToolResult.of_text(format_audit(result.run_result.id, result.steps))

    def inspect(self, run_id: str, symbol: str) -> ToolResult:
        """Show the diagnostics of a stored run for a package or symbol."""
        if not run_id:
            return ToolResult.of_text("run_id is required", is_error=True)
        if not symbol:
            return ToolResult.of_text("symbol is required", is_error=True)

        try:
            result = self.store.load(run_id)
        except _LOAD_ERRORS as exc:
            return ToolResult.of_text(f"Failed to load run {run_id}: {exc}", is_error=True)

        diagnostics = by_symbol(result, symbol)
        kind = _kind_text(result.kind)
        if not diagnostics:
            return ToolResult.of_text(
                f"No diagnostics found for {symbol} in run {run_id} ({kind})."
            )
        return ToolResult.of_text(format_inspect_output(run_id, result.kind, symbol, diagnostics))


def format_audit(run_id: str, results: Sequence[AuditStepResult]) -> str:
    """Format the outcome of an audit run."""
    completed = sum(1 for r in results if r.status == "done")
    parts = [
        f"Audit: {completed}/{len(results)} checks completed\n",
        f"Run: {run_id}\n",
        "\n",
    ]
    for r in results:
        if r.status == "done":
            parts.append(f"{r.name}:\n{r.output}\n")
        elif r.status == "unavailable":
            parts.append(f"{r.name}: unavailable ({r.detail})\n\n")
        elif r.status == "error":
            parts.append(f"{r.name}: error ({r.detail})\n\n")
        elif r.status == "skipped":
            parts.append(f"{r.name}: skipped\n\n")
    parts.append(
        f'Inspect with gov_inspect(run_id="{run_id}", symbol="<package or package.Symbol>").\n'
    )
    return "".join(parts)


def format_check(
    run_id: str, result: RunResult, results: Sequence[StepResult], failed_idx: int
) -> str:
    """Format the outcome of a check run."""
    all_passed = failed_idx < 0
    parts = [
        "Status: PASS\n" if all_passed else "Status: FAIL\n",
        f"Run: {run_id}\n",
        "\n",
    ]

    if result.auto_fixes > 0:
        parts.append(f"Auto-fixed: {result.auto_fixes} issues\n\n")

    parts.append("Steps:\n")
    for r in results:
        if r.status == "unavailable":
            parts.append(f"  {r.name}: unavailable ({r.detail})\n")
        else:
            parts.append(f"  {r.name}: {r.status}\n")
    parts.append("\n")

    if all_passed:
        parts.append("All check steps passed.\n")
        return "".join(parts)

    failed = results[failed_idx]
    failures = format_failure_symbols(result)
    if failures:
        parts.append("Failures:\n")
        parts.extend(f"  {f}\n" for f in failures)
        parts.append("\n")
    elif failed.output:
        parts.append(f"Failed step: {failed.name}\n\n{failed.output}\n\n")

    if failed.status == "unavailable":
        parts.append(
            f"Action: {failed.name} is required but not installed. "
            "Install it and re-run gov_check.\n"
        )
    else:
        parts.append(
            f'Inspect with gov_inspect(run_id="{run_id}", '
            'symbol="<package or package.Symbol>").\n'
        )
    return "".join(parts)


def format_check_with_format_failure(result: RunResult) -> str:
    """Format a check run stopped by formatting issues."""
    parts = [
        "Status: FAIL\n",
        f"Run: {result.id}\n",
        "\n",
        f"Formatting issues ({len(result.format_issues)} files):\n",
    ]
    parts.extend(f"  {issue.file}\n" for issue in result.format_issues)
    parts.append("\n")
    parts.append("Action: run gofumpt to format these files, or re-run gov_check with fix=true.\n")
    return "".join(parts)


def format_inspect_output(
    run_id: str, kind: Any, symbol: str, diagnostics: Sequence[Diagnostic]
) -> str:
    """Format diagnostics grouped by file, with full output for test failures."""
    parts = [f"Run: {run_id} ({_kind_text(kind)})\n"]

    if len(diagnostics) == 1 and diagnostics[0].source == "test":
        parts.append(f"{symbol} — FAIL\n")
    else:
        sources: dict[str, int] = {}
        for d in diagnostics:
            sources[d.source] = sources.get(d.source, 0) + 1
        summary = ", ".join(f"{count} {source}" for source, count in sources.items())
        parts.append(f"{symbol} — {summary}:\n")
    parts.append("\n")

    groups: dict[str, list[Diagnostic]] = {}
    for d in diagnostics:
        groups.setdefault(d.file or "(unknown)", []).append(d)

    for group in groups.values():
        for d in group:
            if d.line > 0:
                if d.col > 0:
                    parts.append(f"{d.file}:{d.line}:{d.col}: ")
                else:
                    parts.append(f"{d.file}:{d.line}: ")
            elif d.file and d.file != "(unknown)":
                parts.append(f"{d.file}: ")
            tag = f"{d.source}/{d.detail}" if d.detail else d.source
            parts.append(f"[{tag}] {d.message}\n")

    for d in diagnostics:
        if d.source == "test" and d.output:
            parts.append("\nOutput:\n")
            parts.extend(f"    {line}\n" for line in d.output.rstrip("\n").split("\n"))

    return "".join(parts)