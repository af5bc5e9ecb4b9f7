import json
import os
from dataclasses import dataclass, field
from unittest.mock import patch

import pytest

from governor.config import CheckConfig, Config
from governor.report.store import BuildError, Kind, LintIssue, RunResult, StaticIssue, TestFailure
from governor.runner import Result, RunnerError
from governor.workflow.check import (
    FORMAT_FAILURE,
    NO_FAILURE,
    first_line,
    format_failure_symbols,
    run_check,
)
from governor.workflow.engine import Engine

LINTER = "go" + "langci-lint"


@dataclass
class FakeRunner:
    results: dict = field(default_factory=dict)
    errors: dict = field(default_factory=dict)
    calls: list = field(default_factory=list)

    def run(self, argv, cwd=""):
        argv = list(argv)
        self.calls.append(argv)
        key = fake_key(argv)
        if key in self.errors:
            raise self.errors[key]
        return self.results.get(key, Result(run_id="fake", exit_code=0))


def fake_key(argv):
    if len(argv) >= 2 and argv[0] == "go":
        return "go " + argv[1]
    return os.path.basename(argv[0]) if argv else ""


def _events(*events):
    return "".join(json.dumps(ev) + "\n" for ev in events).encode()


def passing_test_json():
    return _events({"Action": "pass", "Package": "example.com/foo", "Test": "TestAdd"})


def failing_test_json():
    return _events(
        {"Action": "output", "Package": "example.com/foo", "Test": "TestAdd", "Output": "expected 4, got 5\n"},
        {"Action": "fail", "Package": "example.com/foo", "Test": "TestAdd"},
        {"Action": "fail", "Package": "example.com/foo"},
    )


@pytest.fixture
def no_tools():
    with patch("shutil.which", return_value=None):
        yield


@pytest.fixture
def all_tools():
    with patch("shutil.which", side_effect=lambda name: None if name == "go" else f"/opt/tools/{name}"):
        yield


def make_engine(runner, steps):
    return Engine(
        config=Config(check=CheckConfig(steps=steps)),
        runner=runner,
        workspace="/project",
        repo_root="/project",
    )


def test_all_pass(no_tools):
    runner = FakeRunner(results={"go test": Result(run_id="r", exit_code=0, stdout=passing_test_json())})
    result = run_check(make_engine(runner, ["test"]), None, False)
    assert result.failed_idx == NO_FAILURE
    assert len(result.steps) == 1
    assert result.steps[0].status == "pass"
    assert result.run_result.test_failures == []
    assert result.run_result.kind == Kind.CHECK


def test_test_fails(no_tools):
    runner = FakeRunner(results={"go test": Result(run_id="r", exit_code=1, stdout=failing_test_json())})
    result = run_check(make_engine(runner, ["test", "lint"]), None, False)
    assert result.failed_idx == 0
    assert result.steps[0].status == "fail"
    assert result.steps[1].status == "skipped"
    assert len(result.run_result.test_failures) == 1
    failure = result.run_result.test_failures[0]
    assert failure.message == "expected 4, got 5"
    assert failure.test == "TestAdd"


def test_unknown_step(no_tools):
    runner = FakeRunner(results={"go test": Result(run_id="r", exit_code=0, stdout=passing_test_json())})
    result = run_check(make_engine(runner, ["test", "bogus"]), None, False)
    assert result.failed_idx == 1
    assert "unknown step" in result.steps[1].output


def test_empty_lists_on_pass(no_tools):
    runner = FakeRunner(results={"go test": Result(run_id="r", exit_code=0, stdout=passing_test_json())})
    rr = run_check(make_engine(runner, ["test"]), None, False).run_result
    assert rr.test_failures == []
    assert rr.build_errors == []
    assert rr.lint_issues == []
    assert rr.static_issues == []


def test_runner_error_fails_test_step(no_tools):
    runner = FakeRunner(errors={"go test": RunnerError("boom")})
    result = run_check(make_engine(runner, ["test"]), None, False)
    assert result.failed_idx == 0
    assert "boom" in result.steps[0].output


def test_build_errors_recorded(no_tools):
    stdout = _events(
        {"ImportPath": "example.com/pkg", "Action": "build-output", "Output": "./main.go:10:2: undefined: foo\n"},
        {"ImportPath": "example.com/pkg", "Action": "build-fail"},
    )
    runner = FakeRunner(results={"go test": Result(run_id="r", exit_code=1, stdout=stdout)})
    rr = run_check(make_engine(runner, ["test"]), None, False).run_result
    assert rr.build_errors == [BuildError(package="example.com/pkg", message="./main.go:10:2: undefined: foo")]


def test_format_failure_stops_before_steps(all_tools):
    runner = FakeRunner(results={"gofumpt": Result(run_id="r", exit_code=0, stdout=b"a.go\nb.go\n")})
    result = run_check(make_engine(runner, ["test"]), None, False)
    assert result.failed_idx == FORMAT_FAILURE
    assert result.steps == []
    assert [f.file for f in result.run_result.format_issues] == ["a.go", "b.go"]


def test_lint_unavailable(no_tools):
    result = run_check(make_engine(FakeRunner(), ["lint"]), None, False)
    assert result.failed_idx == 0
    assert result.steps[0].status == "unavailable"
    assert f"{LINTER} is required but not installed." in result.steps[0].detail


def test_lint_issues_recorded(all_tools):
    lint_json = json.dumps(
        {"Issues": [{"FromLinter": "errcheck", "Text": "unchecked error", "Pos": {"Filename": "foo.go", "Line": 10, "Column": 5}}]}
    ).encode()
    runner = FakeRunner(results={LINTER: Result(run_id="r", exit_code=1, stdout=lint_json)})
    result = run_check(make_engine(runner, ["lint"]), None, False)
    assert result.steps[0].status == "fail"
    assert result.run_result.lint_issues == [
        LintIssue(file="foo.go", line=10, col=5, linter="errcheck", message="unchecked error")
    ]


def test_staticcheck_issues_recorded(all_tools):
    line = json.dumps(
        {
            "code": "SA4006",
            "severity": "error",
            "location": {"file": "pkg/a.go", "line": 3, "column": 2},
            "end": {"file": "pkg/a.go", "line": 3, "column": 9},
            "message": "value never used",
        }
    ).encode()
    runner = FakeRunner(results={"staticcheck": Result(run_id="r", exit_code=1, stdout=line)})
    result = run_check(make_engine(runner, ["staticcheck"]), None, False)
    assert result.failed_idx == 0
    issues = result.run_result.static_issues
    assert [(i.code, i.package) for i in issues] == [("SA4006", "pkg")]
    assert runner.calls[-1][-1] == "./..."


def test_fix_runs_tools(all_tools):
    runner = FakeRunner(results={"go test": Result(run_id="r", exit_code=0, stdout=passing_test_json())})
    result = run_check(make_engine(runner, ["test"]), None, True)
    assert result.failed_idx == NO_FAILURE
    names = [fake_key(call) for call in runner.calls]
    assert "gofumpt" in names
    assert LINTER in names


def test_first_line_skips_boilerplate():
    assert first_line("=== RUN TestA\n--- FAIL: TestA\n   real error  \nmore") == "real error"
    assert first_line("\n\n") == ""


def test_format_failure_symbols():
    rr = RunResult(
        id="run",
        kind=Kind.CHECK,
        test_failures=[TestFailure(package="example.com/foo", test="TestAdd")],
        build_errors=[BuildError(package="example.com/b"), BuildError(package="example.com/b")],
        lint_issues=[LintIssue(file="pkg/a/x.go"), LintIssue(file="pkg/a/y.go")],
        static_issues=[StaticIssue(package="pkg/c")],
    )
    assert format_failure_symbols(rr) == [
        "example.com/foo.TestAdd — test failed",
        "example.com/b — 2 build errors",
        "pkg/a — 2 lint issues",
        "pkg/c — 1 staticcheck issues",
    ]