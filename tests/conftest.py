"""Shared pytest fixtures for audit tests."""

import pytest

from cleanup_audit.config import AuditConfig
from cleanup_audit.diskcache_metrics_store import DiskCacheMetricsStore
from cleanup_audit.event_log import EventLog
from cleanup_audit.in_memory_metrics_store import InMemoryMetricsStore
from cleanup_audit.session_lifecycle import AuditSession


@pytest.fixture
def audit_config(tmp_path):
    """AuditConfig rooted in a temporary directory, no psutil snapshot."""
    return AuditConfig(
        audit_dir=tmp_path / "audit",
        logs_dir=tmp_path / "logs",
        retry_backoff_seconds=0.0,
        system_snapshot=False,
    )


@pytest.fixture
def event_log(audit_config):
    return EventLog(audit_config.logs_dir, retry_backoff_seconds=0.0)


@pytest.fixture
def diskcache_store(audit_config):
    store = DiskCacheMetricsStore(
        audit_config.store_dir, lock_timeout_seconds=30.0, retry_backoff_seconds=0.0
    )
    yield store
    store.close()


@pytest.fixture
def memory_store():
    store = InMemoryMetricsStore()
    yield store
    store.close()


@pytest.fixture(params=["diskcache", "memory"])
def store(request, diskcache_store, memory_store):
    """Run a test against every MetricsStore implementation."""
    return diskcache_store if request.param == "diskcache" else memory_store


@pytest.fixture
def audit(store, event_log, audit_config):
    """AuditSession over each store implementation."""
    return AuditSession(
        store=store,
        event_log=event_log,
        audit_dir=audit_config.audit_dir,
        system_snapshot=False,
    )


@pytest.fixture
def sample_files(tmp_path):
    """Three small files with known sizes."""
    files = {}
    for name, size in (("a.txt", 10), ("b.txt", 20), ("c.txt", 30)):
        path = tmp_path / "docs" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x" * size)
        files[name] = str(path)
    return files
