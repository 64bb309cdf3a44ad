"""
Event Log

Append-only durable log of audit sessions and operations, kept as two files
per day:

- ``cleanup_audit_YYYYMMDD.log``: human-readable session blocks and one
  ``[ts] SESSION:.. OP:.. FILE:.. STATUS:.. DETAILS:..`` line per operation
- ``operations_YYYYMMDD.log``: one pipe-delimited line per operation for
  machine parsing (``ts|session|op|file|status|details``)

Every entry is written with a single ``os.write`` on an ``O_APPEND``
descriptor, so concurrent writers (threads or processes) never interleave
partial lines and earlier entries are never touched.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

from .session_metrics import OperationRecord, SessionMetrics
from .utils.io_utils import escape_field, flatten_line, read_operation_log
from .utils.retry_utils import retry_io

logger = logging.getLogger(__name__)


def _day_of(timestamp: str) -> str:
    try:
        return datetime.fromisoformat(timestamp).strftime("%Y%m%d")
    except ValueError:
        return datetime.now().strftime("%Y%m%d")


class EventLog:
    """Append-only audit and operations logs under one directory."""

    def __init__(
        self,
        logs_dir: str | Path,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
    ) -> None:
        self._logs_dir = Path(logs_dir)
        self._retry_attempts = retry_attempts
        self._retry_backoff_seconds = retry_backoff_seconds
        self._lock = threading.Lock()

    @property
    def logs_dir(self) -> Path:
        return self._logs_dir

    def audit_log_path(self, day: str) -> Path:
        return self._logs_dir / f"cleanup_audit_{day}.log"

    def operation_log_path(self, day: str) -> Path:
        return self._logs_dir / f"operations_{day}.log"

    def _append(self, path: Path, text: str) -> None:
        data = text.encode("utf-8")

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(path), os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
            try:
                written = os.write(fd, data)
                if written != len(data):
                    raise OSError(f"short write to {path}: {written}/{len(data)} bytes")
            finally:
                os.close(fd)

        with self._lock:
            retry_io(
                _write,
                description=f"append to {path.name}",
                attempts=self._retry_attempts,
                backoff_seconds=self._retry_backoff_seconds,
            )

    def append(self, record: OperationRecord) -> None:
        """Append one operation in both representations.

        Raises StorageWriteError if either file cannot be written.
        """
        day = _day_of(record.timestamp)
        human = (
            f"[{record.timestamp}] SESSION:{record.session_id} "
            f"OP:{flatten_line(record.operation)} FILE:{flatten_line(record.file_path)} "
            f"STATUS:{flatten_line(record.status)} DETAILS:{flatten_line(record.details)}\n"
        )
        machine = (
            "|".join(
                escape_field(v)
                for v in (
                    record.timestamp,
                    record.session_id,
                    record.operation,
                    record.file_path,
                    record.status,
                    record.details,
                )
            )
            + "\n"
        )
        self._append(self.audit_log_path(day), human)
        self._append(self.operation_log_path(day), machine)

    def write_session_header(self, metrics: SessionMetrics) -> None:
        block = (
            "\n=== AUDIT SESSION START ===\n"
            f"Session ID: {metrics.session_id}\n"
            f"Operation Type: {metrics.operation_type}\n"
            f"User: {metrics.user}\n"
            f"Start Time: {metrics.start_time}\n"
            f"Host: {metrics.host}\n"
            f"Working Directory: {metrics.working_directory}\n"
            f"PID: {metrics.pid}\n\n"
        )
        self._append(self.audit_log_path(_day_of(metrics.start_time)), block)

    def write_session_footer(
        self, metrics: SessionMetrics, system_status: dict[str, Any] | None = None
    ) -> None:
        lines = [
            "\n=== AUDIT SESSION END ===",
            f"Session ID: {metrics.session_id}",
            f"Final Status: {metrics.final_status}",
            f"End Time: {metrics.end_time}",
            f"Files Processed: {metrics.files_processed}",
            f"Files Archived: {metrics.files_archived}",
            f"Files Deleted: {metrics.files_deleted}",
            f"Files Failed: {metrics.files_failed}",
            f"Bytes Processed: {metrics.bytes_processed}",
        ]
        if system_status:
            lines.append(
                "System Status: "
                + " ".join(f"{k}={v}" for k, v in sorted(system_status.items()))
            )
        block = "\n".join(lines) + "\n\n"
        self._append(self.audit_log_path(_day_of(metrics.end_time or "")), block)

    def operation_log_files(self) -> list[Path]:
        return sorted(self._logs_dir.glob("operations_*.log"))

    def audit_log_files(self) -> list[Path]:
        return sorted(self._logs_dir.glob("cleanup_audit_*.log"))

    def replay(self, session_id: str, day: str | None = None) -> list[OperationRecord]:
        """Rebuild a session's operation records from the operations log(s)."""
        paths = [self.operation_log_path(day)] if day else self.operation_log_files()
        records: list[OperationRecord] = []
        for path in paths:
            frame = read_operation_log(path)
            frame = frame[frame["session_id"] == session_id]
            for row in frame.itertuples(index=False):
                records.append(
                    OperationRecord(
                        timestamp=row.timestamp,
                        session_id=row.session_id,
                        operation=row.operation,
                        file_path=row.file_path,
                        status=row.status,
                        details=row.details,
                    )
                )
        return records
