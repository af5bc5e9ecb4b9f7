import pytest

from governor.config import Config
from governor.workflow.engine import (
    LINTER_TOOL,
    Engine,
    ToolUnavailableError,
    derive_package_from_file,
    resolve_tool,
)


class NullRunner:
    def run(self, argv, cwd=""):
        raise AssertionError("runner should not be called")


def make_engine(workspace, repo_root):
    return Engine(config=Config(), runner=NullRunner(), workspace=workspace, repo_root=repo_root)


def test_resolve_packages_empty():
    assert make_engine("/project", "/project").resolve_packages(None) == ["./..."]


def test_resolve_packages_relative_pattern():
    e = make_engine("/project", "/project")
    assert e.resolve_packages(["./pkg/foo/..."]) == ["./pkg/foo/..."]


def test_resolve_packages_import_path():
    e = make_engine("/project", "/project")
    assert e.resolve_packages(["example.com/foo/bar/..."]) == ["example.com/foo/bar/..."]


def test_resolve_packages_absolute_inside_repo_root():
    e = make_engine("/project/pkg/foo", "/project")
    assert e.resolve_packages(["/project/pkg/bar"]) == ["./pkg/bar/..."]


def test_resolve_packages_absolute_outside_repo_root():
    e = make_engine("/project", "/project")
    assert e.resolve_packages(["/other/project"]) == ["./..."]


def test_resolve_packages_absolute_at_repo_root():
    e = make_engine("/project", "/project")
    assert e.resolve_packages(["/project"]) == ["././..."]


def test_resolve_packages_mixed():
    e = make_engine("/project/cmd", "/project")
    got = e.resolve_packages(["./...", "example.com/foo", "/project/pkg/bar", "/outside"])
    assert got == ["./...", "example.com/foo", "./pkg/bar/..."]


def test_resolve_packages_repo_root_fallback():
    e = make_engine("/project", "")
    assert e.resolve_packages(["/project/pkg/foo"]) == ["./pkg/foo/..."]


@pytest.mark.parametrize(
    ("file", "expected"),
    [("", ""), ("main.go", "."), ("pkg/foo/bar.go", "pkg/foo")],
)
def test_derive_package_from_file(file, expected):
    assert derive_package_from_file(file) == expected


def test_tool_unavailable_unknown_tool():
    err = ToolUnavailableError("mystery-tool")
    assert str(err) == "mystery-tool is required but not installed."
    assert err.info is None


def test_tool_unavailable_go_installable():
    text = str(ToolUnavailableError("gocognit"))
    assert text.startswith("gocognit is required but not installed.\n")
    assert "go get -tool github.com/uudashr/gocognit/cmd/gocognit   # adds to go.mod (recommended)" in text
    assert "go install github.com/uudashr/gocognit/cmd/gocognit@latest     # installs globally" in text


def test_tool_unavailable_no_go_install():
    text = str(ToolUnavailableError(LINTER_TOOL))
    assert f"Note: go get -tool and go install are not recommended for {LINTER_TOOL}." in text
    assert "go install" not in text.split("Note:")[0]


def test_resolve_tool_missing(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path))
    assert resolve_tool("definitely-not-here") is None


def test_resolve_tool_from_path(tmp_path, monkeypatch):
    tool = tmp_path / "faketool"
    tool.write_text("#!/bin/sh\nexit 0\n")
    tool.chmod(0o755)
    monkeypatch.setenv("PATH", str(tmp_path))
    assert resolve_tool("faketool") == [str(tool)]