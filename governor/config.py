"""Loading and validation of the optional ``.governor`` YAML file."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

DEFAULT_TIMEOUT = 300.0
"""Default command timeout in seconds (five minutes)."""

DEFAULT_MAX_OUTPUT = 1 << 20
"""Default cap on captured output per stream, in bytes."""

DEFAULT_CHECK_STEPS = ("test", "lint", "staticcheck")
DEFAULT_AUDIT_STEPS = ("coverage", "complexity", "deadcode", "dupl", "vulncheck")
DEFAULT_DUPL_THRESHOLD = 50

CONFIG_FILE = ".governor"


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or parsed."""


_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_COMPONENT = re.compile(r"(\d*\.?\d*)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as ``"5m"``, ``"1h30m"`` or ``"1.5s"`` into seconds."""
    rest = text
    sign = 1.0
    if rest and rest[0] in "+-":
        sign = -1.0 if rest[0] == "-" else 1.0
        rest = rest[1:]
    if rest == "0":
        return 0.0
    if not rest:
        raise ValueError(f"invalid duration {text!r}")
    total = 0.0
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        if match is None or match.group(1) in ("", "."):
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    return sign * total


@dataclass
class TestConfig:
    """Settings for the test step."""

    __test__ = False

    args: list[str] = field(default_factory=list)


@dataclass
class LintConfig:
    """Settings for the lint step."""

    config: str = ""
    args: list[str] = field(default_factory=list)


@dataclass
class CheckConfig:
    """Steps of the check pipeline."""

    steps: list[str] = field(default_factory=list)


@dataclass
class StaticcheckConfig:
    """Settings for staticcheck."""

    checks: list[str] = field(default_factory=list)
    args: list[str] = field(default_factory=list)


@dataclass
class VulncheckConfig:
    """Extra flags for govulncheck."""

    args: list[str] = field(default_factory=list)


@dataclass
class CoverageConfig:
    """Extra flags for coverage collection."""

    args: list[str] = field(default_factory=list)


@dataclass
class ComplexityConfig:
    """Extra flags for gocognit."""

    args: list[str] = field(default_factory=list)


@dataclass
class DeadcodeConfig:
    """Extra flags for deadcode."""

    args: list[str] = field(default_factory=list)


@dataclass
class DuplConfig:
    """Settings for duplicate code detection."""

    threshold: int = 0
    args: list[str] = field(default_factory=list)


@dataclass
class AuditConfig:
    """Steps and per-check settings of the audit pipeline."""

    steps: list[str] = field(default_factory=list)
    coverage: CoverageConfig = field(default_factory=CoverageConfig)
    complexity: ComplexityConfig = field(default_factory=ComplexityConfig)
    deadcode: DeadcodeConfig = field(default_factory=DeadcodeConfig)
    dupl: DuplConfig = field(default_factory=DuplConfig)
    vulncheck: VulncheckConfig = field(default_factory=VulncheckConfig)


def _mapping(value: Any, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{where}: expected a mapping")
    return value


def _string(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ConfigError(f"{where}: expected a string")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _integer(value: Any, where: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{where}: expected an integer")
    return value


def _strings(value: Any, where: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{where}: expected a list")
    return [_string(item, f"{where}[{i}]") for i, item in enumerate(value)]


def _args_only(data: Any, where: str) -> list[str]:
    return _strings(_mapping(data, where).get("args"), f"{where}.args")


def _audit_config(data: Any) -> AuditConfig:
    audit = _mapping(data, "audit")
    dupl = _mapping(audit.get("dupl"), "audit.dupl")
    return AuditConfig(
        steps=_strings(audit.get("steps"), "audit.steps"),
        coverage=CoverageConfig(_args_only(audit.get("coverage"), "audit.coverage")),
        complexity=ComplexityConfig(_args_only(audit.get("complexity"), "audit.complexity")),
        deadcode=DeadcodeConfig(_args_only(audit.get("deadcode"), "audit.deadcode")),
        dupl=DuplConfig(
            threshold=_integer(dupl.get("threshold"), "audit.dupl.threshold"),
            args=_strings(dupl.get("args"), "audit.dupl.args"),
        ),
        vulncheck=VulncheckConfig(_args_only(audit.get("vulncheck"), "audit.vulncheck")),
    )


@dataclass
class Config:
    """Parsed ``.governor`` configuration; empty values mean defaults."""

    version: int = 0
    raw_timeout: str = ""
    raw_max_output: int = 0
    test: TestConfig = field(default_factory=TestConfig)
    lint: LintConfig = field(default_factory=LintConfig)
    staticcheck: StaticcheckConfig = field(default_factory=StaticcheckConfig)
    check: CheckConfig = field(default_factory=CheckConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)

    def timeout(self) -> float:
        """Return the configured timeout in seconds, or the default."""
        if self.raw_timeout:
            try:
                seconds = parse_duration(self.raw_timeout)
            except ValueError:
                return DEFAULT_TIMEOUT
            if seconds > 0:
                return seconds
        return DEFAULT_TIMEOUT

    def max_output_bytes(self) -> int:
        """Return the configured output cap, or the default."""
        return self.raw_max_output if self.raw_max_output > 0 else DEFAULT_MAX_OUTPUT

    def check_steps(self) -> list[str]:
        """Return the configured check steps, or the defaults."""
        return list(self.check.steps) if self.check.steps else list(DEFAULT_CHECK_STEPS)

    def audit_steps(self) -> list[str]:
        """Return the configured audit steps, or the defaults."""
        return list(self.audit.steps) if self.audit.steps else list(DEFAULT_AUDIT_STEPS)

    def dupl_threshold(self) -> int:
        """Return the dupl token threshold, falling back to 50."""
        threshold = self.audit.dupl.threshold
        return threshold if threshold > 0 else DEFAULT_DUPL_THRESHOLD

    @classmethod
    def from_dict(cls, data: Any) -> Config:
        """Build a Config from a decoded YAML document."""
        root = _mapping(data, "config")
        lint = _mapping(root.get("lint"), "lint")
        staticcheck = _mapping(root.get("staticcheck"), "staticcheck")
        check = _mapping(root.get("check"), "check")
        return cls(
            version=_integer(root.get("version"), "version"),
            raw_timeout=_string(root.get("timeout"), "timeout"),
            raw_max_output=_integer(root.get("max_output"), "max_output"),
            test=TestConfig(_args_only(root.get("test"), "test")),
            lint=LintConfig(
                config=_string(lint.get("config"), "lint.config"),
                args=_strings(lint.get("args"), "lint.args"),
            ),
            staticcheck=StaticcheckConfig(
                checks=_strings(staticcheck.get("checks"), "staticcheck.checks"),
                args=_strings(staticcheck.get("args"), "staticcheck.args"),
            ),
            check=CheckConfig(_strings(check.get("steps"), "check.steps")),
            audit=_audit_config(root.get("audit")),
        )


@dataclass
class LoadResult:
    """The parsed config and the discovered repository root."""

    config: Config
    repo_root: str


def find_repo_root(directory: str) -> str:
    """Walk upward from ``directory`` to the first directory holding go.mod."""
    current = os.path.abspath(directory)
    while True:
        if os.path.exists(os.path.join(current, "go.mod")):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            raise FileNotFoundError("go.mod not found")
        current = parent


def load(workspace: str) -> LoadResult:
    """Read ``.governor`` from the repository root above ``workspace``.

    A missing file yields a default Config.
    """
    try:
        root = find_repo_root(workspace)
    except FileNotFoundError:
        root = workspace

    path = os.path.join(root, CONFIG_FILE)
    try:
        with open(path, encoding="utf-8") as handle:
            text = handle.read()
    except FileNotFoundError:
        return LoadResult(config=Config(), repo_root=root)
    except OSError as exc:
        raise ConfigError(f"reading .governor: {exc}") from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"parsing .governor: {exc}") from exc
    try:
        config = Config.from_dict(data)
    except ConfigError as exc:
        raise ConfigError(f"parsing .governor: {exc}") from exc
    return LoadResult(config=config, repo_root=root)