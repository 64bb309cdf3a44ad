from __future__ import annotations

import re
from datetime import datetime
from uuid import uuid4

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def validate_session_id(session_id: str | None) -> str:
    """Validate that session_id is a non-empty string and return the stripped value.

    Session ids end up in file names and in pipe-delimited log lines, so only
    letters, digits, dot, dash and underscore are accepted.
    """
    if session_id is None or session_id == "":
        raise ValueError("session_id is required")
    if not isinstance(session_id, str):
        raise ValueError("session_id must be a non-empty string")
    cleaned = session_id.strip()
    if not cleaned:
        raise ValueError("session_id must be a non-empty string")
    if _UNSAFE_CHARS.search(cleaned):
        raise ValueError(f"session_id contains unsupported characters: {cleaned!r}")
    return cleaned


def generate_session_id(operation_type: str, now: datetime | None = None) -> str:
    """Build ``<operation_type>_<YYYYmmdd_HHMMSS>_<8 hex>``."""
    prefix = _UNSAFE_CHARS.sub("-", operation_type.strip()) or "session"
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{stamp}_{uuid4().hex[:8]}"
