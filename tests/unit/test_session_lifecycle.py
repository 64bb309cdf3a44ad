"""
Unit tests for AuditSession

Tests the open / log / finalize lifecycle and its error signalling.
"""

import json
import logging
from unittest.mock import patch

import pytest

from cleanup_audit.config import AuditConfig
from cleanup_audit.diskcache_metrics_store import DiskCacheMetricsStore
from cleanup_audit.errors import (
    AlreadyFinalizedError,
    AuditError,
    SerializationError,
    StorageWriteError,
    UnknownSessionError,
)
from cleanup_audit.in_memory_metrics_store import InMemoryMetricsStore
from cleanup_audit.session_lifecycle import AuditSession, build_store


class TestLogOperation:
    """Test suite for AuditSession.log_operation."""

    def test_scenario_counts(self, audit):
        session_id = audit.open_session("cleanup", user="alice")
        audit.log_operation(session_id, "archive", "/a", "success")
        audit.log_operation(session_id, "delete", "/b", "success")
        audit.log_operation(session_id, "archive", "/c", "failed", "permission denied")

        metrics = audit.get_metrics(session_id)
        assert metrics.files_processed == 3
        assert metrics.files_archived == 1
        assert metrics.files_deleted == 1
        assert metrics.files_failed == 1

    def test_log_and_metrics_agree(self, audit, sample_files):
        session_id = audit.open_session("cleanup")
        for name, path in sample_files.items():
            audit.log_operation(session_id, "archive", path, "success", f"archived {name}")

        replayed = audit.event_log.replay(session_id)
        metrics = audit.get_metrics(session_id)
        assert len(replayed) == len(metrics.operations) == 3
        assert [r.file_path for r in replayed] == [op.file for op in metrics.operations]
        assert metrics.bytes_processed == 60

    def test_unknown_session_writes_nothing(self, audit):
        with pytest.raises(UnknownSessionError):
            audit.log_operation("never_opened", "archive", "/a", "success")

        assert not audit.store.has_session("never_opened")
        assert audit.event_log.replay("never_opened") == []

    def test_rejected_after_finalize(self, audit):
        session_id = audit.open_session("cleanup")
        audit.finalize_session(session_id)

        with pytest.raises(AlreadyFinalizedError):
            audit.log_operation(session_id, "archive", "/late", "success")
        assert audit.event_log.replay(session_id) == []

    def test_metrics_failure_keeps_log_entry(self, audit, caplog):
        session_id = audit.open_session("cleanup")
        with patch.object(
            audit.store, "update_metrics", side_effect=StorageWriteError("store down")
        ):
            with caplog.at_level(logging.ERROR, logger="cleanup_audit"):
                with pytest.raises(StorageWriteError):
                    audit.log_operation(session_id, "archive", "/a", "success")

        assert len(audit.event_log.replay(session_id)) == 1
        assert "log entry kept" in caplog.text

    def test_append_failure_logged_and_raised(self, audit, caplog):
        session_id = audit.open_session("cleanup")
        with patch.object(
            audit.event_log, "append", side_effect=StorageWriteError("disk full")
        ):
            with caplog.at_level(logging.ERROR, logger="cleanup_audit"):
                with pytest.raises(StorageWriteError):
                    audit.log_operation(session_id, "delete", "/b", "success")

        assert "Audit append failed" in caplog.text
        assert audit.get_metrics(session_id).files_processed == 0

    def test_corrupt_metrics_flagged(self, audit):
        session_id = audit.open_session("cleanup")
        audit.store._write(f"metrics:{session_id}", ["corrupt"])

        with pytest.raises(SerializationError):
            audit.log_operation(session_id, "archive", "/a", "success")
        assert audit.is_degraded(session_id)

    def test_corrupt_metrics_keep_logging(self, audit):
        session_id = audit.open_session("cleanup")
        audit.store._write(f"metrics:{session_id}", ["corrupt"])

        for path in ("/a", "/b"):
            with pytest.raises(SerializationError):
                audit.log_operation(session_id, "archive", path, "success")

        replayed = audit.event_log.replay(session_id)
        assert [r.file_path for r in replayed] == ["/a", "/b"]
        assert audit.store._read(f"metrics:{session_id}") == ["corrupt"]

    @pytest.mark.parametrize("session_id", ["", "   ", None, "no such session", "a/b"])
    def test_invalid_session_id(self, audit, session_id):
        with pytest.raises(UnknownSessionError):
            audit.log_operation(session_id, "archive", "/a", "success")
        assert audit.list_sessions() == []
        assert audit.event_log.operation_log_files() == []

    def test_invalid_session_id_is_audit_error(self, audit):
        with pytest.raises(AuditError):
            audit.finalize_session("a/b")
        with pytest.raises(AuditError):
            audit.get_metrics("no such session")


class TestFinalizeSession:
    """Test suite for AuditSession.finalize_session."""

    def test_finalize_sets_terminal_fields(self, audit):
        session_id = audit.open_session("cleanup")
        audit.log_operation(session_id, "archive", "/a", "success")
        metrics = audit.finalize_session(session_id, "completed")

        assert metrics.final_status == "completed"
        assert metrics.end_time is not None
        stored = audit.get_metrics(session_id)
        assert stored.final_status == "completed"
        assert stored.files_processed == 1

    def test_finalize_twice(self, audit):
        session_id = audit.open_session("cleanup")
        audit.log_operation(session_id, "delete", "/b", "success")
        first = audit.finalize_session(session_id, "completed")

        with pytest.raises(AlreadyFinalizedError):
            audit.finalize_session(session_id, "aborted")

        assert audit.get_metrics(session_id) == first
        footers = "".join(
            p.read_text() for p in audit.event_log.audit_log_files()
        ).count("=== AUDIT SESSION END ===")
        assert footers == 1

    def test_finalize_unknown(self, audit):
        with pytest.raises(UnknownSessionError):
            audit.finalize_session("missing")

    def test_finalize_invalid_status(self, audit):
        session_id = audit.open_session("cleanup")
        with pytest.raises(ValueError):
            audit.finalize_session(session_id, "paused")
        assert not audit.get_metrics(session_id).is_finalized

    def test_footer_failure_leaves_session_open(self, audit):
        session_id = audit.open_session("cleanup")
        with patch.object(
            audit.event_log, "write_session_footer", side_effect=StorageWriteError("full")
        ):
            with pytest.raises(StorageWriteError):
                audit.finalize_session(session_id)

        assert not audit.get_metrics(session_id).is_finalized
        assert audit.finalize_session(session_id).final_status == "completed"

    def test_exports_and_daily_rollup(self, audit, audit_config):
        session_id = audit.open_session("cleanup")
        audit.log_operation(session_id, "archive", "/a", "success")
        metrics = audit.finalize_session(session_id)

        exported = json.loads(
            (audit_config.audit_dir / f"session_{session_id}_metrics.json").read_text()
        )
        assert exported["session_id"] == session_id
        assert exported["final_status"] == "completed"
        assert exported["files_archived"] == 1

        day = metrics.end_time[:10].replace("-", "")
        daily = audit.store.get_daily(day)
        assert daily.total_sessions == 1
        assert daily.sessions == [session_id]
        assert (audit_config.audit_dir / f"daily_metrics_{day}.json").exists()

    def test_export_failure_does_not_unfinalize(self, audit):
        session_id = audit.open_session("cleanup")
        with patch(
            "cleanup_audit.session_lifecycle.write_json_atomic",
            side_effect=OSError("read-only"),
        ):
            metrics = audit.finalize_session(session_id)
        assert metrics.is_finalized
        assert audit.get_metrics(session_id).is_finalized

    def test_system_snapshot_recorded(self, store, event_log, audit_config):
        audit = AuditSession(store, event_log, audit_config.audit_dir, system_snapshot=True)
        with patch(
            "cleanup_audit.session_lifecycle.collect_system_status",
            return_value={"ram_used_percent": 12.5},
        ):
            session_id = audit.open_session("cleanup")
            metrics = audit.finalize_session(session_id)

        assert metrics.system_status == {"ram_used_percent": 12.5}
        text = "".join(p.read_text() for p in event_log.audit_log_files())
        assert "System Status: ram_used_percent=12.5" in text


class TestBuildStore:
    """Test suite for backend selection."""

    def test_memory_backend(self, tmp_path):
        store = build_store(AuditConfig(audit_dir=tmp_path, backend="memory"))
        assert isinstance(store, InMemoryMetricsStore)

    def test_diskcache_backend(self, tmp_path):
        store = build_store(AuditConfig(audit_dir=tmp_path))
        try:
            assert isinstance(store, DiskCacheMetricsStore)
            assert (tmp_path / "store").is_dir()
        finally:
            store.close()

    def test_from_config(self, audit_config):
        with AuditSession.from_config(audit_config) as audit:
            session_id = audit.open_session("cleanup")
            assert audit.list_sessions() == [session_id]
