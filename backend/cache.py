"""GuardNomad Backend — In-memory cache with TTL"""

import time
import logging
from enum import Enum
from typing import Any, Callable, Optional

from cachetools import LRUCache

from config import CACHE_MAX_ENTRIES, SEARCH_CACHE_TTL

logger = logging.getLogger("guardnomad.cache")


class EntryState(str, Enum):
    ABSENT = "absent"
    FRESH = "fresh"
    STALE = "stale"


class TTLCache:
    """Bounded in-memory cache with read-time TTL checks.

    Entries are stored with the time they were written. Freshness is decided
    when reading, so one cache can serve data types with different TTLs.
    Stale entries stay in the store until they are overwritten or evicted.
    Storage is an LRU map, so the least recently used entry is dropped once
    the cache is full.
    """

    def __init__(
        self,
        default_ttl: float = SEARCH_CACHE_TTL,
        max_size: int = CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        self._store: LRUCache = LRUCache(maxsize=max_size)
        self._default_ttl = default_ttl
        self._clock = clock

    def _age(self, stored_at: float) -> float:
        return self._clock() - stored_at

    def state(self, key: str, ttl: Optional[float] = None) -> EntryState:
        entry = self._store.get(key)
        if entry is None:
            return EntryState.ABSENT
        _, stored_at = entry
        if self._age(stored_at) < (ttl or self._default_ttl):
            return EntryState.FRESH
        return EntryState.STALE

    def get(self, key: str, ttl: Optional[float] = None) -> Optional[Any]:
        """Return the cached value if it is still fresh, else None."""
        entry = self._store.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._age(stored_at) >= (ttl or self._default_ttl):
            return None
        return value

    def peek(self, key: str) -> Optional[Any]:
        """Return the cached value regardless of age."""
        entry = self._store.get(key)
        return entry[0] if entry is not None else None

    def set(self, key: str, value: Any):
        if key not in self._store and len(self._store) >= self._store.maxsize:
            logger.debug(f"Cache full ({self._store.maxsize}), evicting least recently used entry")
        self._store[key] = (value, self._clock())

    def delete(self, key: str):
        self._store.pop(key, None)

    def clear(self):
        self._store.clear()

    def evict_expired(self, ttl: Optional[float] = None) -> int:
        limit = ttl or self._default_ttl
        expired = [k for k, (_, stored_at) in self._store.items() if self._age(stored_at) >= limit]
        for k in expired:
            del self._store[k]
        return len(expired)

    def keys(self) -> list[str]:
        return list(self._store.keys())

    def __contains__(self, key: str) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)
