"""Retry policy with exponential backoff and jitter.

Backoff strategy (zero-based attempt index):
  delay = base * 2^attempt + jitter
  jitter = random(0, 75ms)

Errors flagged ``retryable = False`` (validation, response format) are raised
on the first occurrence; everything else is re-attempted until the attempt
budget is spent, then the last error propagates.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from contractor_ai.gateway.exceptions import GatewayError

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_MAX_MS = 75.0


def calculate_backoff(attempt: int, base_delay_ms: float) -> float:
    """Return the sleep in seconds after the zero-based ``attempt`` failed.

    Formula: (base * 2^attempt + random(0, 75)) / 1000
    """
    exponential = base_delay_ms * (2**attempt)
    jitter = random.uniform(0, JITTER_MAX_MS)
    return (exponential + jitter) / 1000.0


async def retry(
    operation: Callable[[], Awaitable[T]],
    attempts: int,
    base_delay_ms: float,
    *,
    label: str = "operation",
) -> T:
    """Run ``operation`` up to ``attempts`` times.

    Cancellation is never retried: asyncio.CancelledError is not an
    Exception subclass and interrupts both the call and the backoff sleep.
    """
    last_error: Exception | None = None

    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            if not getattr(e, "retryable", True):
                raise
            if attempt >= attempts - 1:
                break

            delay = calculate_backoff(attempt, base_delay_ms)
            logger.info(
                "Retrying %s (attempt %d/%d) in %.2fs: %s",
                label,
                attempt + 2,
                attempts,
                delay,
                e,
            )
            await asyncio.sleep(delay)

    if last_error is not None:
        logger.warning("Giving up on %s after %d attempts: %s", label, attempts, last_error)
        raise last_error
    raise GatewayError("Retry failed")
