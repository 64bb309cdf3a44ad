from __future__ import annotations

import csv
import json
import os
import threading
from pathlib import Path
from typing import Any

import pandas as pd

OPERATION_LOG_FIELDS = [
    "timestamp",
    "session_id",
    "operation",
    "file_path",
    "status",
    "details",
]


def file_size(path: str) -> int:
    """Size of a regular file in bytes, or 0 if it is missing or unreadable."""
    try:
        if os.path.isfile(path):
            return os.path.getsize(path)
    except (OSError, ValueError):
        pass
    return 0


def escape_field(value: Any) -> str:
    """Flatten newlines and escape backslash and pipe for the operations log."""
    text = str(value).replace("\r", " ").replace("\n", " ")
    return text.replace("\\", "\\\\").replace("|", "\\|")


def flatten_line(value: Any) -> str:
    return str(value).replace("\r", " ").replace("\n", " ")


def read_operation_log(path: str | Path) -> pd.DataFrame:
    """Read a pipe-delimited operations log into a DataFrame of strings."""
    path = Path(path)
    if not path.exists() or path.stat().st_size == 0:
        return pd.DataFrame(columns=OPERATION_LOG_FIELDS)
    return pd.read_csv(
        path,
        sep="|",
        header=None,
        names=OPERATION_LOG_FIELDS,
        dtype=str,
        keep_default_na=False,
        escapechar="\\",
        quoting=csv.QUOTE_NONE,
    )


def write_json_atomic(path: str | Path, payload: dict[str, Any]) -> None:
    """Write JSON to a temp file beside path, then rename it into place."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=4)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


def humanize_bytes(n: int) -> str:
    units = ["B", "KiB", "MiB", "GiB", "TiB"]
    i = 0
    val = float(n)
    while val >= 1024.0 and i < len(units) - 1:
        val /= 1024.0
        i += 1
    if i == 0:
        return f"{int(val)} B"
    return f"{val:.2f} {units[i]}"
