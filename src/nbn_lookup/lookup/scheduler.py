"""
Bounded-concurrency scheduler for upstream fetches.

At most ``max_concurrency`` tasks hold a slot at once. Further tasks wait
in submission order; when a running task finishes, successfully or not,
its slot is handed straight to the oldest waiter.
"""

import asyncio
from collections import deque
from typing import Awaitable, Callable, TypeVar

from nbn_lookup.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class FetchScheduler:
    """
    FIFO admission gate for coroutines.

    Usage:
        scheduler = FetchScheduler(max_concurrency=4)
        payload = await scheduler.run(lambda: fetcher.fetch_first(paths))
    """

    def __init__(self, max_concurrency: int = 4):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self._active = 0
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def active(self) -> int:
        """Number of tasks currently holding a slot."""
        return self._active

    @property
    def pending(self) -> int:
        """Number of tasks waiting for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def admit(self) -> None:
        """Wait for a slot. Every successful admit must be paired with release()."""
        if self._active < self.max_concurrency and not self._waiters:
            self._active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug("Fetch queued (%d active, %d waiting)", self._active, len(self._waiters))
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # The slot was handed over just before cancellation; pass it on
                self.release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def release(self) -> None:
        """Free a slot, handing it to the oldest live waiter if there is one."""
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot ownership transfers; the active count is unchanged
                waiter.set_result(None)
                return
        if self._active <= 0:
            raise RuntimeError("release() called without a matching admit()")
        self._active -= 1

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Admit, await the coroutine produced by ``factory``, then release."""
        await self.admit()
        try:
            return await factory()
        finally:
            self.release()
