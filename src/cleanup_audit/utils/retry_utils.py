from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from ..errors import StorageWriteError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_io(
    func: Callable[[], T],
    *,
    description: str,
    attempts: int = 3,
    backoff_seconds: float = 0.05,
    retry_on: tuple[type[BaseException], ...] = (OSError,),
) -> T:
    """Run func, retrying transient storage errors with exponential backoff.

    After the last attempt the error is re-raised as StorageWriteError.
    """
    attempts = max(attempts, 1)
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retry_on as exc:
            if attempt == attempts:
                logger.error(f"{description} failed after {attempts} attempts: {exc}")
                raise StorageWriteError(f"{description} failed: {exc}") from exc
            delay = backoff_seconds * (2 ** (attempt - 1))
            logger.warning(
                f"{description} failed (attempt {attempt}/{attempts}), retrying in {delay:.2f}s: {exc}"
            )
            time.sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
