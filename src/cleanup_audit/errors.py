"""
Audit Errors

Exception hierarchy raised by the audit core. Every error derives from
AuditError so callers performing the audited work can catch one type and
carry on with their primary action.
"""


class AuditError(RuntimeError):
    """Base class for audit failures."""


class StorageWriteError(AuditError):
    """The durable medium (log files or metrics store) could not be written."""


class UnknownSessionError(AuditError):
    """An operation referenced a session with no live metrics record."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Unknown audit session: {session_id}")
        self.session_id = session_id


class AlreadyFinalizedError(AuditError):
    """A mutation was attempted on a session that has been finalized."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Audit session already finalized: {session_id}")
        self.session_id = session_id


# Name used for rejected metrics updates after finalize
SessionAlreadyFinalizedError = AlreadyFinalizedError


class SerializationError(AuditError):
    """A stored metrics record could not be read back."""

    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"Corrupt metrics record for session {session_id}: {reason}")
        self.session_id = session_id
        self.reason = reason


class SessionExistsError(AuditError):
    """A caller-supplied session id already has a metrics record."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Audit session already exists: {session_id}")
        self.session_id = session_id
