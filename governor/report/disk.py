"""A result store that keeps each run as a JSON file on disk."""

from __future__ import annotations

import json
import os
import tempfile
import threading

from governor.report.store import RunResult


class StoreError(Exception):
    """Raised when a run result cannot be written or read."""


class DiskStore:
    """Writes run results as JSON files to a lazily created directory.

    Without ``directory`` a fresh temporary directory is made on first use.
    """

    def __init__(self, directory: str | os.PathLike[str] | None = None) -> None:
        self._lock = threading.Lock()
        self._dir = os.fspath(directory) if directory is not None else None
        self._ready = False

    def _ensure_dir(self) -> str:
        with self._lock:
            if self._ready and self._dir is not None:
                return self._dir
            try:
                if self._dir is None:
                    self._dir = tempfile.mkdtemp(prefix="governor-runs-")
                else:
                    os.makedirs(self._dir, exist_ok=True)
            except OSError as exc:
                raise StoreError(f"creating result directory: {exc}") from exc
            self._ready = True
            return self._dir

    def save(self, result: RunResult) -> None:
        """Write ``result`` to ``<id>.json``."""
        directory = self._ensure_dir()
        try:
            data = json.dumps(result.to_dict(), separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise StoreError(f"marshalling result {result.id}: {exc}") from exc
        path = os.path.join(directory, result.id + ".json")
        try:
            with open(path, "w", encoding="utf-8") as handle:
                handle.write(data)
        except OSError as exc:
            raise StoreError(f"writing result {result.id}: {exc}") from exc

    def load(self, run_id: str) -> RunResult:
        """Read the result stored under ``run_id``."""
        directory = self._ensure_dir()
        path = os.path.join(directory, run_id + ".json")
        try:
            with open(path, encoding="utf-8") as handle:
                text = handle.read()
        except OSError as exc:
            raise StoreError(f"reading result {run_id}: {exc}") from exc
        try:
            return RunResult.from_dict(json.loads(text))
        except (ValueError, TypeError, KeyError) as exc:
            raise StoreError(f"unmarshalling result {run_id}: {exc}") from exc