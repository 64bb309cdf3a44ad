"""
Session Lifecycle

AuditSession is the service callers use: open a session, log each file-level
operation, finalize once. It ties together the session registry, the event
log and the metrics aggregator.

The event log is the durable source of truth; metrics are a derived view.
A metrics failure is logged and raised to the caller but never rolls back
the log entry that was already appended.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .audit_types import FinalStatus
from .base_metrics_store import MetricsStore
from .config import AuditConfig, load_audit_config
from .diskcache_metrics_store import DiskCacheMetricsStore
from .errors import (
    AlreadyFinalizedError,
    AuditError,
    SerializationError,
    UnknownSessionError,
)
from .event_log import EventLog
from .in_memory_metrics_store import InMemoryMetricsStore
from .metrics_aggregator import MetricsAggregator
from .session_metrics import OperationRecord, SessionMetrics, now_iso
from .session_registry import SessionRegistry
from .system_utils import collect_system_status
from .utils.io_utils import write_json_atomic
from .utils.session_utils import validate_session_id

logger = logging.getLogger(__name__)


def build_store(config: AuditConfig) -> MetricsStore:
    """Create the metrics store selected by config.backend."""
    if config.backend == "memory":
        return InMemoryMetricsStore()
    return DiskCacheMetricsStore(
        cache_dir=config.store_dir,
        lock_timeout_seconds=config.lock_timeout_seconds,
        lock_expire_seconds=config.lock_expire_seconds,
        retry_attempts=config.retry_attempts,
        retry_backoff_seconds=config.retry_backoff_seconds,
    )


class AuditSession:
    """Audit service exposing open / log / finalize."""

    def __init__(
        self,
        store: MetricsStore,
        event_log: EventLog,
        audit_dir: str | Path,
        system_snapshot: bool = True,
    ) -> None:
        self.store = store
        self.event_log = event_log
        self.audit_dir = Path(audit_dir)
        self._system_snapshot = system_snapshot
        self._registry = SessionRegistry(store, event_log)
        self._aggregator = MetricsAggregator(store)

    @classmethod
    def from_config(cls, config: AuditConfig | None = None) -> "AuditSession":
        config = config or load_audit_config()
        return cls(
            store=build_store(config),
            event_log=EventLog(
                config.logs_dir,
                retry_attempts=config.retry_attempts,
                retry_backoff_seconds=config.retry_backoff_seconds,
            ),
            audit_dir=config.audit_dir,
            system_snapshot=config.system_snapshot,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self.store.close()

    def open_session(
        self,
        operation_type: str,
        user: str | None = None,
        session_id: str | None = None,
    ) -> str:
        """Open a session and return its id."""
        try:
            return self._registry.create_session(operation_type, user, session_id)
        except AuditError as e:
            logger.error(f"Failed to open audit session ({operation_type}): {e}")
            raise

    def log_operation(
        self,
        session_id: str,
        operation: str,
        file_path: str,
        status: str,
        details: str = "",
    ) -> None:
        """
        Record one file-level operation.

        Appends to the event log, then updates the session metrics.

        Raises:
            UnknownSessionError: the session was never opened or the id is
                malformed (nothing is written)
            AlreadyFinalizedError: the session is already finalized
            StorageWriteError: the log append failed after retries
            SerializationError: the metrics record is corrupt (the log entry
                is still appended)
        """
        session_id = self._known_id(session_id)
        corrupt: SerializationError | None = None
        try:
            current = self._precheck(session_id)
        except SerializationError as e:
            corrupt, current = e, None
        if current is not None and current.is_finalized:
            logger.error(
                f"Rejected {operation} {file_path} for finalized session {session_id}"
            )
            raise AlreadyFinalizedError(session_id)

        record = OperationRecord(
            timestamp=now_iso(),
            session_id=session_id,
            operation=operation,
            file_path=file_path,
            status=status,
            details=details,
        )
        try:
            self.event_log.append(record)
        except AuditError as e:
            logger.error(
                f"Audit append failed for session {session_id} "
                f"OP:{operation} FILE:{file_path} STATUS:{status}: {e}"
            )
            raise

        if corrupt is not None:
            logger.error(
                f"Metrics for session {session_id} are degraded; "
                f"OP:{operation} FILE:{file_path} kept in the log only"
            )
            raise corrupt

        try:
            self._aggregator.update(
                session_id, operation, file_path, status, timestamp=record.timestamp
            )
        except AuditError as e:
            logger.error(
                f"Metrics update failed for session {session_id} "
                f"OP:{operation} FILE:{file_path}; log entry kept: {e}"
            )
            raise

    def finalize_session(
        self, session_id: str, final_status: str = FinalStatus.COMPLETED.value
    ) -> SessionMetrics:
        """
        Close a session and freeze its metrics.

        The first caller wins; any later call raises AlreadyFinalizedError and
        leaves the terminal record untouched. On StorageWriteError the session
        is still open and the caller should retry.
        """
        session_id = self._known_id(session_id)
        status = FinalStatus(final_status.strip().lower()).value
        system_status = (
            collect_system_status(self.audit_dir if self.audit_dir.exists() else "/")
            if self._system_snapshot
            else None
        )

        def _freeze(metrics: SessionMetrics) -> None:
            if metrics.is_finalized:
                raise AlreadyFinalizedError(session_id)
            metrics.end_time = now_iso()
            metrics.final_status = status
            metrics.system_status = system_status
            # Terminal log entry is written before the record is frozen
            self.event_log.write_session_footer(metrics, system_status)

        try:
            metrics = self.store.update_metrics(session_id, _freeze)
        except AuditError as e:
            logger.error(f"Failed to finalize audit session {session_id}: {e}")
            raise

        logger.info(
            f"Finalized audit session {session_id} ({status}): "
            f"{metrics.files_processed} processed, {metrics.files_failed} failed"
        )
        self._publish(metrics)
        return metrics

    def _known_id(self, session_id: str | None) -> str:
        try:
            return validate_session_id(session_id)
        except ValueError as e:
            logger.error(f"Rejected audit session id {session_id!r}: {e}")
            raise UnknownSessionError(str(session_id)) from e

    def _precheck(self, session_id: str) -> SessionMetrics:
        try:
            return self.store.get_metrics(session_id)
        except UnknownSessionError:
            logger.error(f"log_operation on unknown audit session {session_id}")
            raise

    def _publish(self, metrics: SessionMetrics) -> None:
        """Export the frozen record and fold it into the daily rollup.

        These files are derived from the store, so failures are logged
        rather than raised.
        """
        day = (metrics.end_time or now_iso())[:10].replace("-", "")
        try:
            write_json_atomic(
                self.audit_dir / f"session_{metrics.session_id}_metrics.json",
                metrics.to_dict(),
            )
            daily = self.store.add_to_daily(day, metrics)
            write_json_atomic(
                self.audit_dir / f"daily_metrics_{day}.json", daily.to_dict()
            )
        except (AuditError, OSError) as e:
            logger.error(
                f"Could not export metrics for session {metrics.session_id}: {e}"
            )

    def get_metrics(self, session_id: str) -> SessionMetrics:
        return self.store.get_metrics(self._known_id(session_id))

    def list_sessions(self) -> list[str]:
        return self.store.list_session_ids()

    def is_degraded(self, session_id: str) -> bool:
        return self.store.is_degraded(session_id)
