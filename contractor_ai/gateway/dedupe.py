"""In-flight Deduplicator — collapses concurrent identical requests.

The first caller for a fingerprint starts the computation; every caller
that arrives while it is pending awaits the same task and receives the same
result or the same exception. The registration is dropped as soon as the
computation settles, whichever way it settles.

Nothing is cached here; the orchestrator stores successful results in the
ResultCache.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InflightDeduplicator:
    """Per-key single-flight for async producers.

    Usage:
        dedupe = InflightDeduplicator()
        result = await dedupe.resolve(fingerprint, lambda: compute(...))
    """

    def __init__(self):
        self._inflight: dict[str, asyncio.Task[Any]] = {}

    @property
    def pending_count(self) -> int:
        return len(self._inflight)

    def is_pending(self, key: str) -> bool:
        return key in self._inflight

    async def resolve(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        """Return the outcome of the single computation registered for ``key``.

        The shared task is shielded: cancelling one waiting caller does not
        cancel the computation the other callers depend on.
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._run(key, producer))
            self._inflight[key] = task
            task.add_done_callback(partial(self._on_settled, key))
        else:
            logger.debug("Joining in-flight computation %s", key[:12])

        return await asyncio.shield(task)

    async def _run(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        try:
            return await producer()
        finally:
            self._forget(key, asyncio.current_task())

    def _on_settled(self, key: str, task: asyncio.Task[Any]) -> None:
        # Covers tasks cancelled before their first step
        self._forget(key, task)
        if not task.cancelled():
            # Mark the exception retrieved even if every caller went away
            task.exception()

    def _forget(self, key: str, task: asyncio.Task[Any] | None) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
