"""Scanning for known vulnerabilities with govulncheck."""

from __future__ import annotations

import json
from typing import Any, Sequence

from governor.report.store import Vuln
from governor.runner import RunnerError
from governor.workflow.engine import Engine, ToolUnavailableError, resolve_tool


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


_Finding = tuple[str, str, list[tuple[str, str]]]


def _decode_message(line: str) -> tuple[tuple[str, str] | None, _Finding | None]:
    message = _obj(json.loads(line))
    osv = None
    if message.get("osv") is not None:
        raw_osv = _obj(message["osv"])
        osv = (_str(raw_osv.get("id")), _str(raw_osv.get("summary")))
    finding = None
    if message.get("finding") is not None:
        raw = _obj(message["finding"])
        trace = []
        for raw_entry in _list(raw.get("trace")):
            entry = _obj(raw_entry)
            _str(entry.get("module"))
            trace.append((_str(entry.get("package")), _str(entry.get("function"))))
        finding = (_str(raw.get("osv")), _str(raw.get("fixed_version")), trace)
    return osv, finding


def parse_govulncheck_output(data: bytes | str | None) -> list[Vuln]:
    """Parse ``govulncheck -json`` output into one Vuln per OSV entry found."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    summaries: dict[str, str] = {}
    findings: list[_Finding] = []
    for raw in (data or "").split("\n"):
        line = raw.strip()
        if not line:
            continue
        try:
            osv, finding = _decode_message(line)
        except (ValueError, TypeError):
            continue
        if osv is not None:
            summaries[osv[0]] = osv[1]
        if finding is not None:
            findings.append(finding)

    vulns: dict[str, Vuln] = {}
    for osv_id, fixed_version, trace in findings:
        vuln = vulns.get(osv_id)
        if vuln is None:
            vuln = Vuln(id=osv_id, summary=summaries.get(osv_id, ""), fixed_version=fixed_version)
            vulns[osv_id] = vuln
        for package, function in trace:
            if package and not vuln.affected_package:
                vuln.affected_package = package
            if function:
                vuln.symbols.append(function)
    return list(vulns.values())


def format_vulncheck_summary(vulns: Sequence[Vuln]) -> str:
    """Format vulnerabilities for display."""
    parts = [f"  Vulnerabilities found: {len(vulns)}\n"]
    for v in vulns:
        line = f"    {v.id}: {v.summary}"
        if v.affected_package:
            line += f" ({v.affected_package})"
        if v.fixed_version:
            line += f" [fixed in {v.fixed_version}]"
        parts.append(line + "\n")
    return "".join(parts)


def run_vulncheck(engine: Engine, packages: Sequence[str] | None) -> list[Vuln]:
    """Run govulncheck over ``packages``."""
    argv = resolve_tool("govulncheck")
    if argv is None:
        raise ToolUnavailableError("govulncheck")
    argv.append("-json")
    argv += engine.config.audit.vulncheck.args
    argv += engine.resolve_packages(packages)
    try:
        result = engine.runner.run(argv, "")
    except RunnerError as exc:
        raise RunnerError(f"executing govulncheck: {exc}") from exc
    return parse_govulncheck_output(result.stdout)