import json
from dataclasses import dataclass, field
from unittest.mock import patch

import pytest

from governor.config import AuditConfig, Config, VulncheckConfig
from governor.report.store import Vuln
from governor.runner import Result
from governor.workflow.engine import Engine, ToolUnavailableError
from governor.workflow.vulncheck import (
    format_vulncheck_summary,
    parse_govulncheck_output,
    run_vulncheck,
)


def _lines(*messages):
    return "\n".join(m if isinstance(m, str) else json.dumps(m) for m in messages)


SAMPLE = _lines(
    {"config": {"scanner_name": "govulncheck"}},
    {"osv": {"id": "GO-2024-1234", "summary": "Bad parsing"}},
    {"osv": {"id": "GO-2024-0002", "summary": "Leak"}},
    "not json",
    {
        "finding": {
            "osv": "GO-2024-1234",
            "fixed_version": "v1.2.3",
            "trace": [{"module": "m", "function": "Parse"}, {"package": "example.com/m/parse"}],
        }
    },
    {"finding": {"osv": "GO-2024-0002", "trace": [{"package": "example.com/leak", "function": "Open"}]}},
    {"finding": {"osv": "GO-2024-1234", "trace": [{"package": "example.com/other", "function": "Decode"}]}},
)


@dataclass
class FakeRunner:
    result: Result = field(default_factory=lambda: Result(run_id="fake", exit_code=0))
    calls: list = field(default_factory=list)

    def run(self, argv, cwd=""):
        self.calls.append(list(argv))
        return self.result


def test_parse_merges_findings_per_osv():
    vulns = parse_govulncheck_output(SAMPLE.encode())
    assert [v.id for v in vulns] == ["GO-2024-1234", "GO-2024-0002"]
    first = vulns[0]
    assert first.summary == "Bad parsing"
    assert first.fixed_version == "v1.2.3"
    assert first.affected_package == "example.com/m/parse"
    assert first.symbols == ["Parse", "Decode"]
    assert vulns[1] == Vuln(
        id="GO-2024-0002", summary="Leak", affected_package="example.com/leak", symbols=["Open"]
    )


def test_parse_ids_are_unique():
    vulns = parse_govulncheck_output(SAMPLE)
    ids = [v.id for v in vulns]
    assert len(ids) == len(set(ids))


def test_parse_without_osv_summary():
    vulns = parse_govulncheck_output(_lines({"finding": {"osv": "GO-2024-0003"}}))
    assert vulns == [Vuln(id="GO-2024-0003")]


@pytest.mark.parametrize("data", [None, b"", b"{broken\n[1,2]\nnull\n"])
def test_parse_nothing(data):
    assert parse_govulncheck_output(data) == []


def test_format_summary():
    out = format_vulncheck_summary(parse_govulncheck_output(SAMPLE))
    assert out.startswith("  Vulnerabilities found: 2\n")
    assert "    GO-2024-1234: Bad parsing (example.com/m/parse) [fixed in v1.2.3]\n" in out
    assert "    GO-2024-0002: Leak (example.com/leak)\n" in out


def test_run_unavailable():
    engine = Engine(config=Config(), runner=FakeRunner(), workspace="/project")
    with patch("shutil.which", return_value=None):
        with pytest.raises(ToolUnavailableError):
            run_vulncheck(engine, None)


def test_run_builds_argv():
    runner = FakeRunner(result=Result(run_id="r", exit_code=0, stdout=SAMPLE.encode()))
    config = Config(audit=AuditConfig(vulncheck=VulncheckConfig(args=["-show", "verbose"])))
    engine = Engine(config=config, runner=runner, workspace="/project", repo_root="/project")
    with patch("shutil.which", side_effect=lambda name: None if name == "go" else f"/opt/tools/{name}"):
        vulns = run_vulncheck(engine, ["example.com/foo"])
    assert runner.calls == [["/opt/tools/govulncheck", "-json", "-show", "verbose", "example.com/foo"]]
    assert len(vulns) == 2