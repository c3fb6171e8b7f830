"""Result Cache — TTL + capacity bounded, insertion-order eviction.

Not an LRU: reads never refresh an entry's position. When the cache is
full, ``set`` evicts the oldest-inserted entry. Expired entries are purged
lazily on lookup, and from the front of the order on insert (one TTL per
cache means insertion order is also expiry order).
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float  # clock() seconds


class ResultCache(Generic[T]):
    """Fingerprint -> result mapping with expiry.

    Values are treated as immutable once stored.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max(1, int(max_entries))
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> T | None:
        """Return the cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() > entry.expires_at:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: T) -> None:
        """Insert ``value`` as the newest entry, evicting the oldest if full."""
        now = self._clock()
        # Replacing a key makes it the newest entry
        self._entries.pop(key, None)
        self._purge_expired(now)

        if len(self._entries) >= self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache full (%d entries), evicted %s", self.max_entries, evicted[:12])

        self._entries[key] = CacheEntry(value=value, expires_at=now + self.ttl_seconds)

    def _purge_expired(self, now: float) -> None:
        while self._entries:
            oldest_key = next(iter(self._entries))
            if now <= self._entries[oldest_key].expires_at:
                break
            del self._entries[oldest_key]

    def clear(self) -> int:
        """Drop every entry. Returns count of cleared entries."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def get_stats(self) -> dict:
        return {
            "entries": len(self._entries),
            "max_entries": self.max_entries,
            "ttl_seconds": self.ttl_seconds,
        }
