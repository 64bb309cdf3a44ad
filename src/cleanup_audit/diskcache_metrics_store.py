"""
DiskCache-based Metrics Store Implementation

A filesystem-based metrics store using the diskcache library. The SQLite
backend makes every single read and write atomic across threads and
processes, and per-session locks are built on ``Cache.add`` so that writers
in different processes sharing one audit directory serialize on the same
session without blocking other sessions.

Key Benefits:
- Safe for concurrent processes sharing one store directory
- Lock entries expire, so a crashed holder cannot wedge a session
- Bounded lock waits and retried writes
"""

from __future__ import annotations

import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator
from uuid import uuid4

import diskcache

from .base_metrics_store import MetricsStore
from .errors import StorageWriteError
from .utils.retry_utils import retry_io

logger = logging.getLogger(__name__)

LOCK_PREFIX = "lock:"
_TRANSIENT_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


class DiskCacheMetricsStore(MetricsStore):
    """
    Filesystem-based MetricsStore using diskcache library.

    Records are stored as plain JSON-compatible dicts keyed
    ``metrics:<session_id>`` and ``daily:<YYYYMMDD>``.
    """

    def __init__(
        self,
        cache_dir: str | Path,
        lock_timeout_seconds: float = 30.0,
        lock_expire_seconds: float = 30.0,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
    ) -> None:
        """
        Initialize DiskCacheMetricsStore.

        Args:
            cache_dir: Directory for the store
            lock_timeout_seconds: Maximum wait for a session lock
            lock_expire_seconds: Lifetime of a lock entry if its holder dies
            retry_attempts: Attempts per read/write before giving up
            retry_backoff_seconds: Initial backoff between attempts
        """
        self._cache_dir = Path(cache_dir)
        self._lock_timeout_seconds = lock_timeout_seconds
        self._lock_expire_seconds = lock_expire_seconds
        self._retry_attempts = retry_attempts
        self._retry_backoff_seconds = retry_backoff_seconds

        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            # No eviction: audit records are never dropped
            self._cache = diskcache.Cache(
                directory=str(self._cache_dir),
                eviction_policy="none",
            )
        except _TRANSIENT_ERRORS as e:
            raise StorageWriteError(
                f"Cannot open metrics store at {self._cache_dir}: {e}"
            ) from e

    def close(self) -> None:
        """Close the cache and cleanup resources."""
        if hasattr(self, "_cache"):
            self._cache.close()

    def _retry(self, func, description: str):
        return retry_io(
            func,
            description=description,
            attempts=self._retry_attempts,
            backoff_seconds=self._retry_backoff_seconds,
            retry_on=_TRANSIENT_ERRORS,
        )

    def _read(self, key: str) -> Any:
        return self._retry(lambda: self._cache.get(key), f"read {key}")

    def _write(self, key: str, value: Any) -> None:
        self._retry(lambda: self._cache.set(key, value), f"write {key}")

    def _keys(self) -> list[str]:
        return self._retry(
            lambda: [k for k in self._cache if not str(k).startswith(LOCK_PREFIX)],
            "list keys",
        )

    @contextmanager
    def lock(self, name: str) -> Iterator[None]:
        """Hold ``lock:<name>`` for the duration of the block.

        The lock entry carries an owner token and an expiry. Waiting is
        bounded by lock_timeout_seconds, after which StorageWriteError is
        raised.
        """
        key = f"{LOCK_PREFIX}{name}"
        token = uuid4().hex
        deadline = time.monotonic() + self._lock_timeout_seconds
        while not self._retry(
            lambda: self._cache.add(key, token, expire=self._lock_expire_seconds),
            f"acquire {key}",
        ):
            if time.monotonic() >= deadline:
                logger.error(
                    f"Timed out after {self._lock_timeout_seconds}s waiting for {key}"
                )
                raise StorageWriteError(f"Timed out waiting for lock {name}")
            time.sleep(0.001)
        try:
            yield
        finally:
            self._release(key, token)

    def _release(self, key: str, token: str) -> None:
        # Only the owner releases; an expired lock may already belong to someone else
        with self._cache.transact(retry=True):
            if self._cache.get(key) == token:
                self._cache.delete(key)
            else:
                logger.warning(f"Lock {key} expired before release")
