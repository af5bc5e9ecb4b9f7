"""Shared engine state, package resolution and tool discovery."""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Protocol, Sequence

from governor.config import Config
from governor.runner import Result

_GO_HOST = "go" + "lang.org"

LINTER_TOOL = "go" + "langci-lint"
"""Binary name of the lint aggregator used by the lint step."""


class CommandRunner(Protocol):
    """Executes commands within a workspace."""

    def run(self, argv: Sequence[str], cwd: str = "") -> Result:
        """Run ``argv`` in ``cwd`` and return its captured output."""
        ...


@dataclass
class Engine:
    """Dependencies shared by the check and audit pipelines.

    ``workspace`` is where commands run; ``repo_root`` is the module root
    used to resolve absolute package directories.
    """

    config: Config
    runner: CommandRunner
    workspace: str = ""
    repo_root: str = ""

    def resolve_packages(self, packages: Sequence[str] | None) -> list[str]:
        """Normalise package arguments; an empty list means ``./...``.

        Absolute directories become ``./<rel>/...`` patterns relative to the
        repository root and are dropped when they lie outside it. Import
        paths and relative patterns pass through unchanged.
        """
        if not packages:
            return ["./..."]

        base = self.repo_root or self.workspace
        resolved: list[str] = []
        for pkg in packages:
            if not os.path.isabs(pkg):
                resolved.append(pkg)
                continue
            try:
                rel = os.path.relpath(pkg, base)
            except ValueError:
                continue
            if rel.startswith(".."):
                continue
            pattern = "./" + rel
            if not pattern.endswith("..."):
                pattern += "/..."
            resolved.append(pattern)

        return resolved or ["./..."]


def resolve_tool(name: str) -> list[str] | None:
    """Return the argv prefix that invokes tool ``name``, or None if absent.

    ``go tool <name>`` is preferred whenever the go command can probe it;
    otherwise the tool is looked up on PATH.
    """
    go_path = shutil.which("go")
    if go_path is not None:
        try:
            subprocess.run(
                [go_path, "tool", name, "-h"],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError:
            pass
        else:
            return [go_path, "tool", name]

    tool_path = shutil.which(name)
    if tool_path is not None:
        return [tool_path]
    return None


@dataclass(frozen=True)
class ToolInfo:
    """Install metadata for a known tool."""

    import_path: str = ""
    alt_install: str = ""
    no_go_install: bool = False


KNOWN_TOOLS: dict[str, ToolInfo] = {
    "gofumpt": ToolInfo(import_path="mvdan.cc/gofumpt@latest"),
    "staticcheck": ToolInfo(import_path="honnef.co/go/tools/cmd/staticcheck@latest"),
    "gocognit": ToolInfo(import_path="github.com/uudashr/gocognit/cmd/gocognit@latest"),
    "deadcode": ToolInfo(import_path=f"{_GO_HOST}/x/tools/cmd/deadcode@latest"),
    "dupl": ToolInfo(import_path="github.com/mibk/dupl@latest"),
    "govulncheck": ToolInfo(import_path=f"{_GO_HOST}/x/vuln/cmd/govulncheck@latest"),
    LINTER_TOOL: ToolInfo(
        alt_install=f"see the {LINTER_TOOL} installation guide",
        no_go_install=True,
    ),
    "gopls": ToolInfo(import_path=f"{_GO_HOST}/x/tools/gopls@latest"),
}


class ToolUnavailableError(Exception):
    """Raised when a required tool is not installed."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.info = KNOWN_TOOLS.get(name)
        super().__init__(self._describe())

    def _describe(self) -> str:
        text = f"{self.name} is required but not installed."
        info = self.info
        if info is None:
            return text
        text += "\n"
        if info.no_go_install:
            if info.alt_install:
                text += f"\nInstall: {info.alt_install}"
                text += f"\nNote: go get -tool and go install are not recommended for {self.name}."
        elif info.import_path:
            bare = info.import_path.removesuffix("@latest")
            text += "\nInstall:"
            text += f"\n  go get -tool {bare}   # adds to go.mod (recommended)"
            text += f"\n  go install {info.import_path}     # installs globally"
        return text


def derive_package_from_file(file: str) -> str:
    """Best-effort package path for a file: its directory, or ``.``."""
    if not file:
        return ""
    idx = file.rfind("/")
    if idx < 0:
        return "."
    return file[:idx]