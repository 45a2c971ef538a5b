"""
Bounded worker pool used by every concurrent stage.

A fixed number of workers pull indices from a shared counter and write
results into a preallocated list, so output order always matches input
order even though work completes out of order.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

MAX_WORKERS = 32


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """Split ``items`` into consecutive lists of at most ``size`` elements."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def map_limit(
    items: Sequence[T],
    limit: int,
    fn: Callable[[T, int], Awaitable[R]],
) -> List[R]:
    """Apply ``fn(item, index)`` to every item with at most ``limit`` in flight.

    ``limit`` is clamped to ``[1, 32]``.  The first exception raised by a
    worker propagates; callers that need per-item isolation catch inside
    ``fn``.
    """
    if not items:
        return []
    workers = max(1, min(MAX_WORKERS, int(limit)))
    results: List[R] = [None] * len(items)  # type: ignore[list-item]
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while True:
            # Single-threaded event loop: read-and-increment cannot interleave
            i = next_index
            if i >= len(items):
                return
            next_index += 1
            results[i] = await fn(items[i], i)

    await asyncio.gather(*(worker() for _ in range(min(workers, len(items)))))
    return results
