"""Shared concurrency primitives for the ingestion worker pool.

Two helpers are exposed:

1. **throttled_gather** -- ``asyncio.gather`` with every awaitable wrapped in
   a semaphore acquire/release, so at most N ingestions touch the providers
   and the vector index at once.

2. **gather_ingestions** -- fan out N ingestion coroutines through
   ``throttled_gather``, log the failures and split the outcome into
   successes and errors.  Cancellation is never swallowed.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

import structlog

from src.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, bounded by *semaphore*.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore shared by every caller that draws from the same pool.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    return await asyncio.gather(
        *(_wrapped(c) for c in coros), return_exceptions=return_exceptions
    )


async def gather_ingestions(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    labels: list[str] | None = None,
    logger: structlog.BoundLogger | None = None,
) -> tuple[list[_T], list[tuple[str, BaseException]]]:
    """Execute ingestion coroutines in parallel and partition the outcomes.

    Returns
    -------
    tuple
        ``(successes, failures)`` where *failures* pairs each label (or the
        coroutine index) with the exception it raised.
    """
    log = logger or _logger
    raw = await throttled_gather(coros, semaphore, return_exceptions=True)

    successes: list[_T] = []
    failures: list[tuple[str, BaseException]] = []
    for idx, result in enumerate(raw):
        label = labels[idx] if labels else str(idx)
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            log.warning("ingestion_failed", item=label, error=str(result))
            failures.append((label, result))
        else:
            successes.append(result)

    return successes, failures
