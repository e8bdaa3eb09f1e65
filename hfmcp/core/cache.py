"""Bounded in-memory cache with per-entry expiry."""

import time
from collections.abc import Callable
from typing import Generic, TypeVar

import cachetools

V = TypeVar("V")

DEFAULT_MAX_ENTRIES = 1024


class TTLCache(Generic[V]):
    """String-keyed ``cachetools.TTLCache`` with LRU eviction past max_entries.

    Pure performance cache: callers must behave correctly when it is empty.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: cachetools.TTLCache = cachetools.TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=clock
        )

    def get(self, key: str) -> V | None:
        return self._entries.get(key)

    def set(self, key: str, value: V) -> None:
        self._entries[key] = value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
