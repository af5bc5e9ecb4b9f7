"""An in-memory LRU cache in front of another result store."""

from __future__ import annotations

import threading
from collections import OrderedDict

from governor.report.store import RunResult, Store


class LRUStore:
    """Caches the most recent results and delegates to ``back`` on a miss."""

    def __init__(self, capacity: int, back: Store) -> None:
        self._capacity = max(1, capacity)
        self._back = back
        self._items: OrderedDict[str, RunResult] = OrderedDict()
        self._lock = threading.Lock()

    def _put(self, run_id: str, result: RunResult) -> None:
        self._items[run_id] = result
        self._items.move_to_end(run_id)
        while len(self._items) > self._capacity:
            self._items.popitem(last=False)

    def save(self, result: RunResult) -> None:
        """Cache ``result`` and write it through to the backing store."""
        with self._lock:
            self._put(result.id, result)
        self._back.save(result)

    def load(self, run_id: str) -> RunResult:
        """Return a cached result, or load it from the backing store and cache it."""
        with self._lock:
            cached = self._items.get(run_id)
            if cached is not None:
                self._items.move_to_end(run_id)
                return cached
        result = self._back.load(run_id)
        with self._lock:
            self._put(run_id, result)
        return result