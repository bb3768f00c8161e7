"""
Ephemeral Query Cache
Process-wide, in-memory, short-TTL map that collapses duplicate recommend() calls.

Key:   (normalized base or full label, target location, mode)
Value: the MatchResult returned for that query
Expiry is checked at lookup time; writes also drop expired entries and the
oldest ones past max_entries. There is no background sweep.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from loguru import logger

from ..config import settings
from ..schemas import ActivityQuery, MatchResult


CacheKey = Tuple[str, str, str]


@dataclass(frozen=True)
class CacheEntry:
    """One cached query result. Entries are replaced whole, never mutated."""
    key: CacheKey
    payload: MatchResult
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


class QueryCache:
    """
    Short-lived cache for recommend() results.

    Usage:
        cache = QueryCache(ttl_seconds=600)
        key = cache.key_for(query)
        result = cache.get(key)
        if result is None:
            result = compute(query)
            cache.put(key, result)
    """

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
        max_entries: Optional[int] = None
    ):
        self.ttl = settings.QUERY_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.max_entries = settings.QUERY_CACHE_MAX_ENTRIES if max_entries is None else max_entries
        self._clock = clock or time.monotonic
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()

        self.hits = 0
        self.misses = 0

    @staticmethod
    def key_for(query: ActivityQuery) -> CacheKey:
        activity = query.normalized_base or (query.full_activity_label or "").lower().strip()
        location = (query.target_location or "").lower().strip()
        return (activity, location, query.mode.value)

    def get(self, key: CacheKey) -> Optional[MatchResult]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if entry.is_expired(self._clock()):
            self._entries.pop(key, None)
            self.misses += 1
            logger.debug(f"[Query Cache] expired: {key}")
            return None

        self.hits += 1
        logger.info(f"[Query Cache Hit] {key}")
        return entry.payload.model_copy(deep=True)

    def put(self, key: CacheKey, result: MatchResult) -> None:
        # Build the full entry before publishing it under the key
        entry = CacheEntry(
            key=key,
            payload=result.model_copy(deep=True),
            created_at=self._clock(),
            ttl=self.ttl,
        )
        self._entries.pop(key, None)
        self._entries[key] = entry
        self._evict(entry.created_at)
        logger.debug(f"[Query Cache] stored {key} ({len(result.candidates)} candidates)")

    def _evict(self, now: float) -> None:
        """Drop expired entries, then the oldest ones over max_entries"""
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

        if expired:
            logger.debug(f"[Query Cache] dropped {len(expired)} expired entries")

    def invalidate(self, key: CacheKey) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def stats(self) -> dict:
        return {
            "entries": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "ttl_seconds": self.ttl,
        }

    def __len__(self) -> int:
        return len(self._entries)
