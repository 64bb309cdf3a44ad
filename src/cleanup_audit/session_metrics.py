"""
Session Metrics

This module contains the records kept by the audit core: the immutable
OperationRecord appended to the event log, and the SessionMetrics and
DailyMetrics aggregates kept in the metrics store.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from .audit_types import CounterDelta


def now_iso() -> str:
    """Local time in ISO-8601 with offset, second precision."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


@dataclass(frozen=True)
class OperationRecord:
    """One logged fact about a single file-level action."""

    timestamp: str
    session_id: str
    operation: str
    file_path: str
    status: str
    details: str = ""


@dataclass
class OperationSummary:
    """Compact entry kept in a session's operations list."""

    timestamp: str
    operation: str
    file: str
    status: str
    size: int


@dataclass
class SessionMetrics:
    """Running aggregate for one audit session."""

    session_id: str
    operation_type: str
    user: str
    host: str
    start_time: str
    working_directory: str
    pid: int = 0
    files_processed: int = 0
    files_archived: int = 0
    files_deleted: int = 0
    files_failed: int = 0
    bytes_processed: int = 0
    operations: list[OperationSummary] = field(default_factory=list)
    end_time: str | None = None
    final_status: str | None = None
    system_status: dict[str, Any] | None = None

    @property
    def is_finalized(self) -> bool:
        return self.final_status is not None

    def apply(self, delta: CounterDelta, summary: OperationSummary) -> None:
        """Add a counter delta and its operation summary."""
        self.files_processed += delta.files_processed
        self.files_archived += delta.files_archived
        self.files_deleted += delta.files_deleted
        self.files_failed += delta.files_failed
        self.bytes_processed += delta.bytes_processed
        self.operations.append(summary)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionMetrics:
        """Rebuild a record from its stored form. Raises KeyError/TypeError if malformed."""
        if not isinstance(data, dict):
            raise TypeError(f"expected dict, got {type(data).__name__}")
        payload = dict(data)
        payload["operations"] = [
            OperationSummary(**op) for op in payload.get("operations", [])
        ]
        return cls(**payload)


@dataclass
class DailyMetrics:
    """Totals across the sessions finalized on one day."""

    date: str
    total_sessions: int = 0
    total_files_processed: int = 0
    total_files_archived: int = 0
    total_files_deleted: int = 0
    total_files_failed: int = 0
    total_bytes_processed: int = 0
    sessions: list[str] = field(default_factory=list)

    def add_session(self, metrics: SessionMetrics) -> None:
        self.total_sessions += 1
        self.total_files_processed += metrics.files_processed
        self.total_files_archived += metrics.files_archived
        self.total_files_deleted += metrics.files_deleted
        self.total_files_failed += metrics.files_failed
        self.total_bytes_processed += metrics.bytes_processed
        self.sessions.append(metrics.session_id)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyMetrics:
        return cls(**data)
