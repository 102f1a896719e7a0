"""Restarting whole protocol runs. A run is never resumed mid-phase."""

from __future__ import annotations

import time
from typing import Callable, Tuple, Type, TypeVar

from .logging import get_logger

T = TypeVar("T")

logger = get_logger("retry")


class RetryError(Exception):
    """Raised when retry attempts are exhausted; chained to the last failure."""


def retry(
    func: Callable[[], T],
    retries: int,
    backoff: float,
    exceptions: Tuple[Type[BaseException], ...],
    max_delay: float = 30.0,
) -> T:
    """Call ``func`` up to ``retries + 1`` times, doubling the pause after each failure."""
    delay = backoff
    for attempt in range(1, retries + 2):
        try:
            return func()
        except exceptions as exc:
            if attempt > retries:
                raise RetryError(f"Gave up after {attempt} attempt(s)") from exc
            logger.warning("Attempt %d of %d failed: %s; restarting in %.2fs", attempt, retries + 1, exc, delay)
            time.sleep(delay)
            delay = min(delay * 2, max_delay)
