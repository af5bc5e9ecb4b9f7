"""Command execution bounded by a workspace, a timeout and an output cap."""

from __future__ import annotations

import os
import subprocess
import threading
import uuid
from dataclasses import dataclass
from typing import IO, Sequence

from governor.config import DEFAULT_MAX_OUTPUT, DEFAULT_TIMEOUT

_READ_SIZE = 65536
_DRAIN_GRACE = 5.0


class RunnerError(Exception):
    """Raised when a command cannot be started or its directory is invalid."""


@dataclass
class Result:
    """Output of one command execution."""

    run_id: str
    exit_code: int
    stdout: bytes = b""
    stderr: bytes = b""
    truncated: bool = False


class _CappedReader(threading.Thread):
    """Drains a pipe, keeping at most ``limit`` bytes and discarding the rest."""

    def __init__(self, stream: IO[bytes], limit: int) -> None:
        super().__init__(daemon=True)
        self._stream = stream
        self._limit = limit
        self._data = bytearray()

    def run(self) -> None:
        with self._stream:
            while chunk := self._stream.read1(_READ_SIZE):
                room = self._limit - len(self._data)
                if room > 0:
                    self._data += chunk[:room]

    @property
    def data(self) -> bytes:
        return bytes(self._data)


@dataclass
class Runner:
    """Runs commands inside a workspace; ``timeout`` is in seconds."""

    workspace: str
    timeout: float = DEFAULT_TIMEOUT
    max_output: int = DEFAULT_MAX_OUTPUT

    def run(self, argv: Sequence[str], cwd: str = "") -> Result:
        """Run ``argv`` in ``cwd`` (relative to the workspace) and capture its output.

        A non-zero exit is reported in the Result; a command killed on timeout
        has exit code -1.
        """
        if not argv:
            raise RunnerError("empty argv")
        directory = self.resolve_dir(cwd)
        command = list(argv)
        run_id = str(uuid.uuid4())

        try:
            proc = subprocess.Popen(
                command,
                cwd=directory,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise RunnerError(f"executing {command[0]}: {exc}") from exc

        out = _CappedReader(proc.stdout, self.max_output)
        err = _CappedReader(proc.stderr, self.max_output)
        out.start()
        err.start()
        try:
            proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
        out.join(_DRAIN_GRACE)
        err.join(_DRAIN_GRACE)

        stdout, stderr = out.data, err.data
        exit_code = proc.returncode if proc.returncode >= 0 else -1
        return Result(
            run_id=run_id,
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            truncated=len(stdout) >= self.max_output or len(stderr) >= self.max_output,
        )

    def resolve_dir(self, cwd: str) -> str:
        """Resolve ``cwd`` against the workspace and reject paths outside it."""
        if not cwd:
            return self.workspace
        if os.path.isabs(cwd):
            directory = os.path.normpath(cwd)
        else:
            directory = os.path.normpath(os.path.join(self.workspace, cwd))
        try:
            rel = os.path.relpath(directory, self.workspace)
        except ValueError as exc:
            raise RunnerError(f"resolving cwd: {exc}") from exc
        if rel.startswith(".."):
            raise RunnerError(f'cwd "{cwd}" is outside workspace "{self.workspace}"')
        return directory