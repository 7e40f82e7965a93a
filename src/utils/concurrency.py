"""Bounded fan-out for the ingestion orchestrator.

Each (place, source) pair is independent, but embedding backends rate
limit, so pairs are gathered behind a semaphore instead of all at once.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

_T = TypeVar("_T")

_DEFAULT_SLOTS = 2


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """``asyncio.gather`` with at most ``semaphore`` slots in flight.

    Parameters
    ----------
    coros:
        Awaitables to run.
    semaphore:
        Shared limiter.  When omitted a new two-slot semaphore is made for
        this call only.
    return_exceptions:
        Passed through to ``asyncio.gather``; by default failures come back
        as values in their slot.

    Returns
    -------
    list
        One entry per awaitable, in input order.
    """
    limiter = semaphore if semaphore is not None else asyncio.Semaphore(_DEFAULT_SLOTS)

    async def _bounded(awaitable: Awaitable[_T]) -> _T:
        async with limiter:
            return await awaitable

    return await asyncio.gather(
        *(_bounded(awaitable) for awaitable in coros),
        return_exceptions=return_exceptions,
    )
