"""
Audit Types and Classification

This module contains the enums for operation and outcome kinds, and the
classification function mapping an (operation, outcome) pair to the
counter deltas applied to a session's metrics.
"""

from dataclasses import dataclass
from enum import Enum


class OperationKind(Enum):
    """Kinds of file-level actions reported by callers."""

    ARCHIVE = "archive"
    DELETE = "delete"
    SCAN = "scan"
    SYNC = "sync"
    MOVE = "move"
    COPY = "copy"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> "OperationKind":
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER


class OutcomeKind(Enum):
    """Status reported for a single operation."""

    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str) -> "OutcomeKind":
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.OTHER

    @property
    def is_failure(self) -> bool:
        return self in (OutcomeKind.FAILED, OutcomeKind.ERROR)


class FinalStatus(Enum):
    """Terminal status written when a session is finalized."""

    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass(frozen=True)
class CounterDelta:
    """Increments applied to a session's counters for one operation."""

    files_processed: int = 1
    files_archived: int = 0
    files_deleted: int = 0
    files_failed: int = 0
    bytes_processed: int = 0


def classify(operation: str, status: str, size: int = 0) -> CounterDelta:
    """Map an operation/status pair to the counter increments it produces.

    Every call counts as one processed file. Successful archives and deletes
    bump their own counters; any failed or errored outcome counts as a
    failure whatever the operation was.
    """
    op = OperationKind.parse(operation)
    outcome = OutcomeKind.parse(status)
    size = max(int(size), 0)

    if outcome.is_failure:
        return CounterDelta(files_failed=1, bytes_processed=size)
    if outcome is OutcomeKind.SUCCESS and op is OperationKind.ARCHIVE:
        return CounterDelta(files_archived=1, bytes_processed=size)
    if outcome is OutcomeKind.SUCCESS and op is OperationKind.DELETE:
        return CounterDelta(files_deleted=1, bytes_processed=size)
    return CounterDelta(bytes_processed=size)
