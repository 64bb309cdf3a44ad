"""
Session Registry

Creates audit sessions: allocates the session id, writes the session header
to the event log and stores the initial metrics record.
"""

from __future__ import annotations

import getpass
import logging
import os

from .base_metrics_store import MetricsStore
from .errors import SessionExistsError
from .event_log import EventLog
from .session_metrics import SessionMetrics, now_iso
from .system_utils import get_hostname
from .utils.session_utils import generate_session_id, validate_session_id

logger = logging.getLogger(__name__)


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class SessionRegistry:
    """Allocates session ids and the durable artifacts of a new session."""

    def __init__(self, store: MetricsStore, event_log: EventLog) -> None:
        self._store = store
        self._event_log = event_log

    def create_session(
        self,
        operation_type: str,
        user: str | None = None,
        session_id: str | None = None,
    ) -> str:
        """
        Open a new audit session.

        Args:
            operation_type: Kind of work being audited (e.g. "cleanup")
            user: Acting user, defaults to the login name
            session_id: Explicit id; generated when omitted

        Returns:
            The session id

        Raises:
            SessionExistsError: session_id already has a record
            StorageWriteError: the header or metrics record could not be written
        """
        if not operation_type or not operation_type.strip():
            raise ValueError("operation_type must be a non-empty string")
        operation_type = operation_type.strip()
        if session_id is None:
            session_id = generate_session_id(operation_type)
        else:
            session_id = validate_session_id(session_id)
            if self._store.has_session(session_id):
                raise SessionExistsError(session_id)

        metrics = SessionMetrics(
            session_id=session_id,
            operation_type=operation_type,
            user=user or _current_user(),
            host=get_hostname(),
            start_time=now_iso(),
            working_directory=os.getcwd(),
            pid=os.getpid(),
        )

        # Header first: a failed header leaves no metrics record behind
        self._event_log.write_session_header(metrics)
        self._store.create_session(metrics)
        logger.info(
            f"Opened audit session {session_id} ({operation_type}) for {metrics.user}"
        )
        return session_id
