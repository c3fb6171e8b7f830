"""Bounded Task Queue — caps concurrently running upstream calls.

Admission rules:
  - Fewer than ``concurrency`` operations running and nobody waiting:
    the caller takes a slot immediately.
  - Otherwise the caller parks on a FIFO wait list.
  - When an operation finishes (success or failure) its slot is handed
    directly to the head waiter, so a late arrival can never overtake a
    parked caller and ``running`` never exceeds ``concurrency``.

Only admission is ordered; completion order is whatever the operations do.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BoundedTaskQueue:
    """FIFO concurrency gate for async operations.

    Usage:
        queue = BoundedTaskQueue(concurrency=2)
        result = await queue.run(lambda: client.post(...))
    """

    def __init__(self, concurrency: int):
        self.concurrency = max(1, int(concurrency))
        self._running = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def running(self) -> int:
        """Operations currently holding a slot."""
        return self._running

    @property
    def waiting(self) -> int:
        """Callers parked until a slot frees up."""
        return len(self._waiters)

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Execute ``operation`` once a slot is available and return its result."""
        await self._acquire()
        try:
            return await operation()
        finally:
            self._release()

    async def _acquire(self) -> None:
        if self._running < self.concurrency and not self._waiters:
            self._running += 1
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug(
            "Queue full (%d/%d running), %d waiting",
            self._running,
            self.concurrency,
            len(self._waiters),
        )
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Slot was handed over just before the cancellation landed
                self._release()
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Slot passes to the waiter; running count is unchanged
                waiter.set_result(None)
                return
        self._running = max(0, self._running - 1)

    def get_stats(self) -> dict:
        """Get queue statistics."""
        return {
            "concurrency": self.concurrency,
            "running": self._running,
            "waiting": len(self._waiters),
        }
