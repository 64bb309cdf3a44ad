"""
In-Memory Metrics Store Implementation (Cacheout-backed)

Provides a MetricsStore for single-process use such as tests and dry runs.
Records live in an unbounded Cacheout cache with no TTL. Per-key locks come
from a registry guarded by its own lock; an entry is dropped once no thread
holds or waits on it.
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from typing import Any, Iterator

from cacheout import Cache

from .base_metrics_store import MetricsStore


class InMemoryMetricsStore(MetricsStore):
    """In-memory MetricsStore with one lock per session."""

    def __init__(self) -> None:
        # maxsize=0 and ttl=0 disable eviction and expiry
        self._records = Cache(maxsize=0, ttl=0)
        # name -> [lock, number of threads holding or waiting on it]
        self._locks: dict[str, list] = {}
        self._registry_lock = threading.Lock()

    def _read(self, key: str) -> Any:
        # Copies keep callers from mutating stored state outside a lock
        return copy.deepcopy(self._records.get(key))

    def _write(self, key: str, value: Any) -> None:
        self._records.set(key, copy.deepcopy(value))

    def _keys(self) -> list[str]:
        return list(self._records.keys())

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        with self._registry_lock:
            entry = self._locks.setdefault(name, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._registry_lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[name]

    def close(self) -> None:
        self._records.clear()
        with self._registry_lock:
            self._locks.clear()
