"""Retry helper for operations that lose optimistic-concurrency races."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from marketflow.domain.exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_retry(
    func: Callable[[], T],
    *,
    attempts: int = 3,
    backoff_base: float = 0.05,
) -> T:
    """Run *func*, re-running it on ConcurrencyConflict.

    *func* must open its own unit of work so that every attempt starts
    from a fresh snapshot.  The last conflict is re-raised once
    *attempts* runs have failed.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    for attempt in range(attempts):
        try:
            return func()
        except ConcurrencyConflict as exc:
            if attempt >= attempts - 1:
                logger.error("Giving up after %d conflicting attempts: %s", attempts, exc)
                raise
            logger.warning(
                "Concurrency conflict (attempt %d/%d): %s", attempt + 1, attempts, exc
            )
            if backoff_base > 0:
                time.sleep(backoff_base * (2 ** attempt))
    raise AssertionError("unreachable")
