import logging
import socket
from pathlib import Path
from typing import Any

import psutil

logger = logging.getLogger(__name__)


def get_hostname() -> str:
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


def collect_system_status(
    path: str | Path = "/", include_process_rss: bool = True
) -> dict[str, Any] | None:
    """Snapshot RAM and disk usage (for the disk holding path) and log it.

    Returns None if psutil cannot report; a missing snapshot never fails a session.
    """
    try:
        vm = psutil.virtual_memory()
        du = psutil.disk_usage(str(path))
        process_rss_mb: int | None = None
        if include_process_rss:
            try:
                process_rss_mb = psutil.Process().memory_info().rss // (1024**2)
            except psutil.Error:
                process_rss_mb = None

        status: dict[str, Any] = {
            "ram_used_percent": round(float(vm.percent), 1),
            "ram_used_mb": vm.used // (1024**2),
            "ram_total_mb": vm.total // (1024**2),
            "disk_used_percent": round(float(du.percent), 1),
            "disk_used_gb": du.used // (1024**3),
            "disk_total_gb": du.total // (1024**3),
        }
        if process_rss_mb is not None:
            status["process_rss_mb"] = process_rss_mb

        logger.info(
            f"RAM used={vm.percent:.1f}% "
            f"({status['ram_used_mb']}MB/{status['ram_total_mb']}MB) | "
            f"Disk used={du.percent:.1f}% "
            f"({status['disk_used_gb']}GB/{status['disk_total_gb']}GB)"
            + (f" | Process RSS={process_rss_mb}MB" if process_rss_mb is not None else "")
        )
        return status
    except Exception as exc:  # pragma: no cover
        logger.debug(f"Failed to collect system status: {exc}")
        return None
