"""Audit configuration loader.

Defaults are overridden by CLEANUP_AUDIT_* environment variables, the same
way alerting is switched on and tuned through the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

BACKENDS = ("diskcache", "memory")


@dataclass
class AuditConfig:
    """Effective settings for an audit service instance."""

    audit_dir: Path = Path(".reports/audit")
    logs_dir: Path = Path(".reports/logs")
    backend: str = "diskcache"
    lock_timeout_seconds: float = 30.0
    lock_expire_seconds: float = 30.0
    retry_attempts: int = 3
    retry_backoff_seconds: float = 0.05
    system_snapshot: bool = True

    @property
    def store_dir(self) -> Path:
        return self.audit_dir / "store"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return max(int(raw), 1)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def load_audit_config(audit_dir: str | Path | None = None) -> AuditConfig:
    """Build an AuditConfig from defaults and the environment.

    An explicit audit_dir wins over CLEANUP_AUDIT_DIR; the logs directory
    then defaults to a ``logs`` sibling of it.
    """
    effective = AuditConfig()

    base = audit_dir or os.environ.get("CLEANUP_AUDIT_DIR")
    if base:
        effective.audit_dir = Path(base)
        effective.logs_dir = Path(base).parent / "logs"
    logs_dir = os.environ.get("CLEANUP_AUDIT_LOGS_DIR")
    if logs_dir:
        effective.logs_dir = Path(logs_dir)

    backend = os.environ.get("CLEANUP_AUDIT_BACKEND", effective.backend).lower()
    if backend not in BACKENDS:
        logger.warning(
            f"Unknown CLEANUP_AUDIT_BACKEND={backend!r}, using {effective.backend}"
        )
    else:
        effective.backend = backend

    effective.lock_timeout_seconds = _env_float(
        "CLEANUP_AUDIT_LOCK_TIMEOUT", effective.lock_timeout_seconds
    )
    effective.retry_attempts = _env_int(
        "CLEANUP_AUDIT_RETRY_ATTEMPTS", effective.retry_attempts
    )
    effective.retry_backoff_seconds = _env_float(
        "CLEANUP_AUDIT_RETRY_BACKOFF", effective.retry_backoff_seconds
    )
    effective.system_snapshot = os.environ.get(
        "CLEANUP_AUDIT_SYSTEM_SNAPSHOT", "true"
    ).lower() in {"1", "true", "yes"}

    return effective
