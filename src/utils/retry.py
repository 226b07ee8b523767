"""Exponential-backoff retry loop shared by providers and vector indexes.

The delay before retry *n* (1-based) is ``base_delay * 2 ** (n - 1)``, so
with a base of 0.5 s the waits are 0.5, 1, 2, 4 ...  Only exceptions for
which ``should_retry`` returns True are retried; anything else propagates
on the first occurrence.  When the attempt ceiling is reached the last
exception is re-raised unchanged and the caller decides how to translate it.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

_T = TypeVar("_T")


def backoff_delay(base_delay: float, attempt: int) -> float:
    """Return the wait in seconds after the *attempt*-th failure."""
    return base_delay * (2 ** (attempt - 1))


async def retry_with_backoff(
    operation: Callable[[], Awaitable[_T]],
    /,
    *,
    should_retry: Callable[[BaseException], bool],
    max_attempts: int,
    base_delay: float,
    logger: structlog.BoundLogger,
    event: str,
    **log_context: object,
) -> _T:
    """Await ``operation()`` until it succeeds or retries are exhausted.

    Parameters
    ----------
    operation:
        Zero-argument callable returning a fresh awaitable per attempt.
    should_retry:
        Classifier deciding whether an exception is transient.
    max_attempts:
        Total number of attempts, including the first one.
    base_delay:
        Seconds to wait after the first failure; doubled each time.
    logger, event, log_context:
        A warning is logged under *event* before every sleep.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as exc:
            if not should_retry(exc) or attempt >= max(1, max_attempts):
                raise
            delay = backoff_delay(base_delay, attempt)
            logger.warning(
                event,
                attempt=attempt,
                max_attempts=max_attempts,
                delay_s=delay,
                error=str(exc),
                **log_context,
            )
            await asyncio.sleep(delay)
