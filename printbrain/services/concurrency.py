"""Bounded concurrency primitives for the pipeline stages.

Two primitives are provided:

- ``BoundedPool``: at most N coroutines in flight, FIFO admission. Used by
  the Drive scanner and batch database writes.
- ``run_lanes``: N lanes each pulling the next item from a shared iterator
  until it is exhausted. Used by LLM enrichment so a free lane starts the
  next batch immediately (no wave blocking).
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class BoundedPool:
    """Run coroutines with at most ``size`` in flight."""

    def __init__(self, size: int):
        if size < 1:
            raise ValueError("Pool size must be >= 1")
        self.size = size
        self._semaphore = asyncio.Semaphore(size)
        self.active = 0

    async def run(self, fn: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any) -> R:
        """Run one coroutine function once a slot is free."""
        async with self._semaphore:
            self.active += 1
            try:
                return await fn(*args, **kwargs)
            finally:
                self.active -= 1

    async def map(
        self,
        fn: Callable[[T], Awaitable[R]],
        items: Iterable[T],
        return_exceptions: bool = False,
    ) -> List[Any]:
        """Apply ``fn`` to every item, results in input order."""
        return await asyncio.gather(
            *(self.run(fn, item) for item in items),
            return_exceptions=return_exceptions,
        )


async def run_lanes(
    items: Iterable[T],
    worker: Callable[[T, int], Awaitable[None]],
    lanes: int,
) -> int:
    """Drain ``items`` with ``lanes`` concurrent pullers.

    Each lane takes the next item as soon as its previous one finishes.
    The index passed to ``worker`` is the item's position in ``items``.

    Returns:
        Number of items processed
    """
    iterator = iter(items)
    counter = {"next": 0}

    def take() -> Optional[tuple]:
        try:
            item = next(iterator)
        except StopIteration:
            return None
        index = counter["next"]
        counter["next"] += 1
        return index, item

    async def lane() -> None:
        while True:
            step = take()
            if step is None:
                return
            index, item = step
            await worker(item, index)

    await asyncio.gather(*(lane() for _ in range(max(1, lanes))))
    return counter["next"]


def backoff_delay(attempt: int, base: float = 1.0, cap: float = 30.0, jitter: float = 1.0) -> float:
    """Exponential back-off in seconds: min(base * 2^attempt + rand * jitter, cap)."""
    return min(base * (2 ** attempt) + random.random() * jitter, cap)


async def retry_async(
    fn: Callable[[], Awaitable[R]],
    *,
    attempts: int,
    is_retryable: Callable[[Exception], bool],
    delay: Callable[[int, Exception], float],
    label: str = "call",
) -> R:
    """Call ``fn`` until it succeeds, retrying retryable errors.

    Args:
        fn: Zero-argument coroutine function
        attempts: Maximum attempts (including the first)
        is_retryable: Predicate on the raised exception
        delay: Seconds to wait given the failed attempt (0-based) and its error
        label: Name used in log messages

    Raises:
        The last exception when attempts are exhausted or the error is not retryable
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if attempt >= attempts - 1 or not is_retryable(e):
                raise
            wait = delay(attempt, e)
            logger.warning(f"{label} failed ({e}), retry {attempt + 1}/{attempts - 1} in {wait:.1f}s")
            await asyncio.sleep(wait)
            attempt += 1
