from . import cli
from importlib.metadata import version, PackageNotFoundError

from .audit_types import CounterDelta, FinalStatus, OperationKind, OutcomeKind, classify
from .errors import (
    AlreadyFinalizedError,
    AuditError,
    SerializationError,
    SessionAlreadyFinalizedError,
    SessionExistsError,
    StorageWriteError,
    UnknownSessionError,
)
from .session_lifecycle import AuditSession
from .session_metrics import OperationRecord, SessionMetrics


def main():
    """Main entry point for the package."""
    return cli.main()


# Package metadata helpers
try:
    __version__ = version("cleanup-audit")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0+dev"

# Public API
__all__ = [
    "main",
    "cli",
    "__version__",
    "AuditSession",
    "OperationRecord",
    "SessionMetrics",
    "CounterDelta",
    "FinalStatus",
    "OperationKind",
    "OutcomeKind",
    "classify",
    "AuditError",
    "StorageWriteError",
    "UnknownSessionError",
    "AlreadyFinalizedError",
    "SessionAlreadyFinalizedError",
    "SerializationError",
    "SessionExistsError",
]
