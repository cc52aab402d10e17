# datecoach/services/response_cache.py
"""Bounded TTL cache for analysis responses, evicting in insertion order."""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from datecoach.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300.0


@dataclass
class CacheEntry(Generic[T]):
    response: T
    stored_at: float


class ResponseCache(Generic[T]):
    """
    Key -> (response, stored_at) map.

    An entry older than ``ttl_seconds`` is never returned. Inserting beyond
    ``max_entries`` evicts the oldest-inserted entry; reads do not refresh
    an entry's position.
    """

    def __init__(
        self,
        max_entries: int = 50,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[T]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if self._clock() - entry.stored_at >= self.ttl_seconds:
            del self._entries[key]
            self.misses += 1
            logger.debug("Cache entry expired", key=key[:12])
            return None

        self.hits += 1
        return entry.response

    def set(self, key: str, response: T) -> None:
        # Re-setting a key moves it to the tail with a fresh timestamp
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(response=response, stored_at=self._clock())

        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache entry evicted", key=evicted[:12], max_entries=self.max_entries)

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return round(self.hits / lookups, 4) if lookups else 0.0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
