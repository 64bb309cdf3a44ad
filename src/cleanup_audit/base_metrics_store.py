"""
Abstract Base Metrics Store

This module contains the abstract base class that defines the interface for
all metrics storage implementations, plus the read-modify-write helpers that
every implementation shares.

Implementations only supply raw key/value access and a lock scoped to a
single key. The helpers here take that lock around every mutation, so two
callers updating the same session never lose an update, while callers
working on different sessions never wait on each other.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Callable, Iterable

from .errors import SerializationError, SessionExistsError, UnknownSessionError
from .session_metrics import DailyMetrics, SessionMetrics

logger = logging.getLogger(__name__)

METRICS_PREFIX = "metrics:"
DAILY_PREFIX = "daily:"
DEGRADED_PREFIX = "degraded:"


class MetricsStore(ABC):
    """
    Abstract base class for session metrics storage.

    The interface is designed to support:
    - Atomic creation of a session's metrics record
    - Per-session locked read-modify-write updates
    - Daily rollups across finalized sessions
    - Flagging records that can no longer be read
    """

    @abstractmethod
    def _read(self, key: str) -> Any:
        """
        Read a raw stored value.

        Args:
            key: The storage key

        Returns:
            The stored value, or None if not present
        """
        pass

    @abstractmethod
    def _write(self, key: str, value: Any) -> None:
        """
        Store a raw value, replacing any previous one.

        Args:
            key: The storage key
            value: A JSON-compatible value
        """
        pass

    @abstractmethod
    def _keys(self) -> Iterable[str]:
        """Iterate over all stored keys."""
        pass

    @abstractmethod
    def lock(self, name: str) -> AbstractContextManager[None]:
        """
        Return a context manager holding an exclusive lock on name.

        Args:
            name: Lock scope, e.g. a session id or ``daily:<YYYYMMDD>``
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release any resources held by the store."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # Session records
    def _metrics_key(self, session_id: str) -> str:
        return f"{METRICS_PREFIX}{session_id}"

    def _load(self, session_id: str) -> SessionMetrics:
        raw = self._read(self._metrics_key(session_id))
        if raw is None:
            raise UnknownSessionError(session_id)
        try:
            return SessionMetrics.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            self.mark_degraded(session_id, str(e))
            raise SerializationError(session_id, str(e)) from e

    def create_session(self, metrics: SessionMetrics) -> None:
        """Store a new session record. Raises SessionExistsError if one is present."""
        with self.lock(metrics.session_id):
            if self._read(self._metrics_key(metrics.session_id)) is not None:
                raise SessionExistsError(metrics.session_id)
            self._write(self._metrics_key(metrics.session_id), metrics.to_dict())

    def has_session(self, session_id: str) -> bool:
        return self._read(self._metrics_key(session_id)) is not None

    def get_metrics(self, session_id: str) -> SessionMetrics:
        """Return a snapshot of the session's metrics."""
        return self._load(session_id)

    def update_metrics(
        self, session_id: str, mutate: Callable[[SessionMetrics], None]
    ) -> SessionMetrics:
        """Apply mutate to the session record under the session's lock.

        mutate may raise to abort the update; nothing is written in that case.
        """
        with self.lock(session_id):
            metrics = self._load(session_id)
            mutate(metrics)
            self._write(self._metrics_key(session_id), metrics.to_dict())
            return metrics

    def list_session_ids(self) -> list[str]:
        return sorted(
            key[len(METRICS_PREFIX) :]
            for key in self._keys()
            if key.startswith(METRICS_PREFIX)
        )

    # Degraded sessions
    def mark_degraded(self, session_id: str, reason: str) -> None:
        """Flag a session whose record is unreadable. The record itself is left as is."""
        logger.error(f"Marking audit session {session_id} degraded: {reason}")
        try:
            self._write(f"{DEGRADED_PREFIX}{session_id}", reason)
        except Exception as e:
            logger.error(f"Could not flag session {session_id} as degraded: {e}")

    def is_degraded(self, session_id: str) -> bool:
        return self._read(f"{DEGRADED_PREFIX}{session_id}") is not None

    # Daily rollups
    def add_to_daily(self, day: str, metrics: SessionMetrics) -> DailyMetrics:
        """Add a finalized session to the rollup for day (``YYYYMMDD``)."""
        key = f"{DAILY_PREFIX}{day}"
        with self.lock(key):
            raw = self._read(key)
            if raw is None:
                daily = DailyMetrics(date=f"{day[:4]}-{day[4:6]}-{day[6:8]}")
            else:
                daily = DailyMetrics.from_dict(raw)
            if metrics.session_id not in daily.sessions:
                daily.add_session(metrics)
                self._write(key, daily.to_dict())
            return daily

    def get_daily(self, day: str) -> DailyMetrics | None:
        raw = self._read(f"{DAILY_PREFIX}{day}")
        if raw is None:
            return None
        return DailyMetrics.from_dict(raw)

    def list_days(self) -> list[str]:
        return sorted(
            key[len(DAILY_PREFIX) :]
            for key in self._keys()
            if key.startswith(DAILY_PREFIX)
        )
