"""
Unit tests for MetricsStore implementations

Runs the shared store contract against DiskCacheMetricsStore and
InMemoryMetricsStore, then covers diskcache-specific behavior.
"""

import threading
import time
from unittest.mock import patch

import diskcache
import pytest

from cleanup_audit.diskcache_metrics_store import DiskCacheMetricsStore
from cleanup_audit.errors import (
    SerializationError,
    SessionExistsError,
    StorageWriteError,
    UnknownSessionError,
)
from cleanup_audit.session_metrics import SessionMetrics


def make_metrics(session_id="s1"):
    return SessionMetrics(
        session_id=session_id,
        operation_type="cleanup",
        user="alice",
        host="box",
        start_time="2025-07-22T12:00:00+00:00",
        working_directory="/tmp",
    )


class TestMetricsStoreContract:
    """Behavior every MetricsStore must provide."""

    def test_create_and_get(self, store):
        store.create_session(make_metrics())

        assert store.has_session("s1")
        assert store.get_metrics("s1") == make_metrics()
        assert store.list_session_ids() == ["s1"]

    def test_create_twice_rejected(self, store):
        store.create_session(make_metrics())
        with pytest.raises(SessionExistsError):
            store.create_session(make_metrics())

    def test_unknown_session(self, store):
        assert not store.has_session("nope")
        with pytest.raises(UnknownSessionError):
            store.get_metrics("nope")
        with pytest.raises(UnknownSessionError):
            store.update_metrics("nope", lambda m: None)
        assert store.list_session_ids() == []

    def test_update_persists(self, store):
        store.create_session(make_metrics())

        def bump(m):
            m.files_processed += 1

        returned = store.update_metrics("s1", bump)
        assert returned.files_processed == 1
        assert store.get_metrics("s1").files_processed == 1

    def test_failed_mutation_writes_nothing(self, store):
        store.create_session(make_metrics())

        def explode(m):
            m.files_processed = 99
            raise RuntimeError("abort")

        with pytest.raises(RuntimeError):
            store.update_metrics("s1", explode)
        assert store.get_metrics("s1").files_processed == 0

    def test_snapshots_are_detached(self, store):
        store.create_session(make_metrics())
        snapshot = store.get_metrics("s1")
        snapshot.files_processed = 50
        assert store.get_metrics("s1").files_processed == 0

    def test_corrupt_record_flagged_not_repaired(self, store):
        store._write("metrics:bad", {"session_id": "bad", "garbage": True})

        with pytest.raises(SerializationError):
            store.get_metrics("bad")
        assert store.is_degraded("bad")
        assert store._read("metrics:bad") == {"session_id": "bad", "garbage": True}
        assert not store.is_degraded("s1")

    def test_concurrent_updates_no_lost_increments(self, store):
        store.create_session(make_metrics())

        def bump(m):
            current = m.files_processed
            time.sleep(0.0005)
            m.files_processed = current + 1

        threads = [
            threading.Thread(
                target=lambda: [store.update_metrics("s1", bump) for _ in range(10)]
            )
            for _ in range(10)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.get_metrics("s1").files_processed == 100

    def test_locks_are_per_session(self, store):
        store.create_session(make_metrics("s1"))
        store.create_session(make_metrics("s2"))
        entered = threading.Event()

        def hold_s1():
            with store.lock("s1"):
                entered.set()
                time.sleep(0.3)

        holder = threading.Thread(target=hold_s1)
        holder.start()
        entered.wait(5)

        start = time.monotonic()
        store.update_metrics("s2", lambda m: None)
        assert time.monotonic() - start < 0.25
        holder.join()

    def test_daily_rollup(self, store):
        first = make_metrics("s1")
        first.files_processed = 2
        first.files_archived = 1
        second = make_metrics("s2")
        second.files_processed = 3
        second.files_failed = 1
        second.bytes_processed = 10

        store.add_to_daily("20250722", first)
        daily = store.add_to_daily("20250722", second)

        assert daily.date == "2025-07-22"
        assert daily.total_sessions == 2
        assert daily.total_files_processed == 5
        assert daily.total_files_failed == 1
        assert daily.total_bytes_processed == 10
        assert store.get_daily("20250722") == daily
        assert store.list_days() == ["20250722"]
        assert store.get_daily("20250101") is None

    def test_daily_rollup_counts_session_once(self, store):
        store.add_to_daily("20250722", make_metrics("s1"))
        daily = store.add_to_daily("20250722", make_metrics("s1"))
        assert daily.total_sessions == 1


class TestDiskCacheMetricsStore:
    """DiskCache-specific behavior."""

    def test_persists_across_instances(self, tmp_path):
        with DiskCacheMetricsStore(tmp_path / "store") as store:
            store.create_session(make_metrics())
        with DiskCacheMetricsStore(tmp_path / "store") as reopened:
            assert reopened.get_metrics("s1") == make_metrics()

    def test_lock_keys_hidden_from_listing(self, diskcache_store):
        diskcache_store.create_session(make_metrics())
        with diskcache_store.lock("s1"):
            assert diskcache_store.list_session_ids() == ["s1"]

    def test_lock_timeout(self, tmp_path):
        with DiskCacheMetricsStore(
            tmp_path / "store", lock_timeout_seconds=0.05, lock_expire_seconds=10
        ) as store:
            store.create_session(make_metrics())
            with store.lock("s1"):
                with pytest.raises(StorageWriteError):
                    store.update_metrics("s1", lambda m: None)

    def test_expired_lock_is_taken_over(self, tmp_path):
        with DiskCacheMetricsStore(
            tmp_path / "store", lock_timeout_seconds=2, lock_expire_seconds=0.1
        ) as store:
            store.create_session(make_metrics())
            # Simulate a crashed holder that never released
            store._cache.add("lock:s1", "dead-owner", expire=0.1)
            store.update_metrics("s1", lambda m: None)

    def test_write_retries_then_fails(self, tmp_path):
        with DiskCacheMetricsStore(tmp_path / "store", retry_backoff_seconds=0) as store:
            with patch.object(
                store._cache, "set", side_effect=diskcache.Timeout("locked")
            ) as mock_set:
                with pytest.raises(StorageWriteError):
                    store.create_session(make_metrics())
            assert mock_set.call_count == 3
            assert not store.has_session("s1")

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StorageWriteError):
            DiskCacheMetricsStore(blocker / "store")


class TestInMemoryMetricsStore:
    """Tests specific to InMemoryMetricsStore."""

    def test_lock_registry_drained_after_use(self, memory_store):
        for n in range(20):
            memory_store.create_session(make_metrics(f"s{n}"))
            memory_store.update_metrics(f"s{n}", lambda m: None)
        memory_store.add_to_daily("20250722", memory_store.get_metrics("s0"))

        assert memory_store._locks == {}

    def test_lock_registry_drained_under_contention(self, memory_store):
        memory_store.create_session(make_metrics())
        inside = []
        overlaps = []

        def worker():
            for _ in range(50):
                with memory_store.lock("s1"):
                    inside.append(1)
                    if len(inside) > 1:
                        overlaps.append(len(inside))
                    inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert memory_store._locks == {}

    def test_lock_released_on_error(self, memory_store):
        with pytest.raises(RuntimeError):
            with memory_store.lock("s1"):
                raise RuntimeError("boom")

        assert memory_store._locks == {}
        with memory_store.lock("s1"):
            pass
