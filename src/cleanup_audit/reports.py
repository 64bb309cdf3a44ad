"""
Audit Reports

Markdown reports built from the metrics store and the event logs:

- daily: totals for one day plus its sessions and recent log lines
- session: one session's details, metrics and replayed operations
- summary: the last seven days and failure counts across all logs
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path

import pandas as pd

from .base_metrics_store import MetricsStore
from .errors import AuditError
from .event_log import EventLog
from .session_metrics import now_iso
from .utils.io_utils import humanize_bytes, read_operation_log
from .utils.session_utils import validate_session_id

logger = logging.getLogger(__name__)

REPORT_KINDS = ("daily", "session", "summary")
RECENT_DAYS = 7


def _validate_day(day: str) -> str:
    """Return day if it is a YYYYMMDD date, else raise ValueError."""
    if not (isinstance(day, str) and len(day) == 8 and day.isdigit()):
        raise ValueError(f"Report date must be YYYYMMDD, got {day!r}")
    try:
        datetime.strptime(day, "%Y%m%d")
    except ValueError:
        raise ValueError(f"Report date must be YYYYMMDD, got {day!r}") from None
    return day


def recent_days(today: datetime | None = None, count: int = RECENT_DAYS) -> list[str]:
    """The last count calendar days as YYYYMMDD, oldest first."""
    today = today or datetime.now()
    return [(today - timedelta(days=n)).strftime("%Y%m%d") for n in reversed(range(count))]


class AuditReporter:
    """Renders markdown audit reports into the audit directory."""

    def __init__(self, store: MetricsStore, event_log: EventLog, audit_dir: str | Path):
        self._store = store
        self._event_log = event_log
        self._audit_dir = Path(audit_dir)

    def generate_report(self, kind: str = "daily", target: str | None = None) -> Path:
        """
        Write a report and return its path.

        Args:
            kind: One of "daily", "session", "summary"
            target: Day as YYYYMMDD for daily reports, session id for session reports

        Returns:
            Path of the written markdown file
        """
        if kind not in REPORT_KINDS:
            raise ValueError(f"Unknown report type: {kind}")
        if kind == "daily":
            target = _validate_day(target or datetime.now().strftime("%Y%m%d"))
            content = self.render_daily(target)
        elif kind == "session":
            if not target:
                raise ValueError("session reports need a session id")
            target = validate_session_id(target)
            content = self.render_session(target)
        else:
            target = _validate_day(target or datetime.now().strftime("%Y%m%d"))
            content = self.render_summary(today=datetime.strptime(target, "%Y%m%d"))

        output = self._audit_dir / f"audit_report_{kind}_{target}.md"
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(content, encoding="utf-8")
        logger.info(f"Audit report generated: {output}")
        return output

    def render_daily(self, day: str) -> str:
        try:
            pretty = datetime.strptime(day, "%Y%m%d").strftime("%B %d, %Y")
        except ValueError:
            pretty = day
        lines = [
            "# Daily Cleanup Audit Report",
            "",
            f"**Date:** {pretty}",
            f"**Generated:** {now_iso()}",
            "",
            "## Summary",
            "",
        ]

        daily = self._store.get_daily(day)
        if daily is None:
            lines.append("No cleanup activities recorded for this date.")
        else:
            lines += [
                f"- **Total Sessions:** {daily.total_sessions}",
                f"- **Files Processed:** {daily.total_files_processed}",
                f"- **Files Archived:** {daily.total_files_archived}",
                f"- **Files Deleted:** {daily.total_files_deleted}",
                f"- **Files Failed:** {daily.total_files_failed}",
                f"- **Bytes Processed:** {humanize_bytes(daily.total_bytes_processed)}",
                "",
                "## Session Details",
                "",
            ]
            for session_id in daily.sessions:
                try:
                    metrics = self._store.get_metrics(session_id)
                except AuditError as e:
                    lines += [f"### Session: {session_id}", "", f"- unavailable: {e}", ""]
                    continue
                lines += [
                    f"### Session: {session_id}",
                    "",
                    f"- **Operation Type:** {metrics.operation_type}",
                    f"- **Start Time:** {metrics.start_time}",
                    f"- **Files Processed:** {metrics.files_processed}",
                    "",
                ]

        lines += ["", "## Detailed Audit Log", ""]
        audit_log = self._event_log.audit_log_path(day)
        if audit_log.exists():
            entries = [
                line
                for line in audit_log.read_text(encoding="utf-8").splitlines()
                if line.startswith("[")
            ]
            lines += entries[-50:]
        return "\n".join(lines) + "\n"

    def render_session(self, session_id: str) -> str:
        lines = [
            "# Session Cleanup Audit Report",
            "",
            f"**Session ID:** {session_id}",
            f"**Generated:** {now_iso()}",
            "",
        ]
        try:
            metrics = self._store.get_metrics(session_id)
        except AuditError as e:
            lines.append(f"Session metrics unavailable: {e}")
        else:
            lines += [
                "## Session Details",
                "",
                f"- **Operation Type:** {metrics.operation_type}",
                f"- **User:** {metrics.user}",
                f"- **Host:** {metrics.host}",
                f"- **Start Time:** {metrics.start_time}",
                f"- **End Time:** {metrics.end_time or 'In Progress'}",
                f"- **Final Status:** {metrics.final_status or 'In Progress'}",
                "",
                "## Metrics",
                "",
                f"- **Files Processed:** {metrics.files_processed}",
                f"- **Files Archived:** {metrics.files_archived}",
                f"- **Files Deleted:** {metrics.files_deleted}",
                f"- **Files Failed:** {metrics.files_failed}",
                f"- **Bytes Processed:** {humanize_bytes(metrics.bytes_processed)}",
            ]
        if self._store.is_degraded(session_id):
            lines += ["", "**Warning:** metrics record is flagged as degraded."]

        lines += ["", "## Detailed Operations", ""]
        for record in self._event_log.replay(session_id):
            lines.append(
                f"[{record.timestamp}] OP:{record.operation} FILE:{record.file_path} "
                f"STATUS:{record.status} DETAILS:{record.details}"
            )
        return "\n".join(lines) + "\n"

    def render_summary(self, today: datetime | None = None) -> str:
        """Summarize the last seven calendar days up to and including today."""
        window = recent_days(today)
        lines = [
            "# Cleanup System Audit Summary",
            "",
            f"**Generated:** {now_iso()}",
            "",
            "## Recent Activity",
            "",
        ]
        for day in window:
            daily = self._store.get_daily(day)
            if daily is not None:
                lines.append(
                    f"- **{day}:** {daily.total_sessions} sessions, "
                    f"{daily.total_files_processed} files processed"
                )

        frames = [
            read_operation_log(self._event_log.operation_log_path(day)) for day in window
        ]
        frames = [frame for frame in frames if not frame.empty]
        operations = (
            pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()
        )
        failures = 0
        by_status: dict[str, int] = {}
        if not operations.empty:
            by_status = operations["status"].value_counts().to_dict()
            failures = int(operations["status"].isin(["failed", "error"]).sum())

        lines += [
            "",
            "## System Health",
            "",
            f"- **Recent Failures:** {failures}",
            f"- **Open Sessions:** {len(self._open_sessions())}",
        ]
        if by_status:
            lines += ["", "## Operations by Status", ""]
            lines += [f"- **{k}:** {v}" for k, v in sorted(by_status.items())]
        return "\n".join(lines) + "\n"

    def _open_sessions(self) -> list[str]:
        open_ids = []
        for session_id in self._store.list_session_ids():
            try:
                if not self._store.get_metrics(session_id).is_finalized:
                    open_ids.append(session_id)
            except AuditError as e:
                logger.warning(f"Skipping unreadable session {session_id}: {e}")
        return open_ids

    def list_audit_files(self) -> dict[str, list[Path]]:
        return {
            "audit_logs": self._event_log.audit_log_files(),
            "operation_logs": self._event_log.operation_log_files(),
            "session_metrics": sorted(self._audit_dir.glob("session_*_metrics.json")),
            "daily_metrics": sorted(self._audit_dir.glob("daily_metrics_*.json")),
        }
