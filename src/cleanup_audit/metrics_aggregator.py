"""
Metrics Aggregator

Folds each logged operation into its session's metrics record. The whole
read-modify-write runs under the store's per-session lock.
"""

from __future__ import annotations

import logging

from .audit_types import classify
from .base_metrics_store import MetricsStore
from .errors import AlreadyFinalizedError
from .session_metrics import OperationSummary, SessionMetrics, now_iso
from .utils.io_utils import file_size

logger = logging.getLogger(__name__)


class MetricsAggregator:
    """Applies classified counter deltas to session metrics."""

    def __init__(self, store: MetricsStore) -> None:
        self._store = store

    def update(
        self,
        session_id: str,
        operation: str,
        file_path: str,
        status: str,
        timestamp: str | None = None,
    ) -> SessionMetrics:
        """
        Count one operation against a session.

        Args:
            session_id: The session identifier
            operation: Operation tag (archive, delete, scan, ...)
            file_path: File the operation acted on; its current size is added
            status: Outcome (success, failed, error, skipped, ...)
            timestamp: Time of the operation, defaults to now

        Returns:
            The updated metrics

        Raises:
            UnknownSessionError: no record for session_id
            SerializationError: the record could not be read
            AlreadyFinalizedError: the session is finalized
        """
        size = file_size(file_path)
        delta = classify(operation, status, size)
        summary = OperationSummary(
            timestamp=timestamp or now_iso(),
            operation=operation,
            file=file_path,
            status=status,
            size=size,
        )

        def _apply(metrics: SessionMetrics) -> None:
            if metrics.is_finalized:
                raise AlreadyFinalizedError(session_id)
            metrics.apply(delta, summary)

        return self._store.update_metrics(session_id, _apply)
