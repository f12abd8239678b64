"""
Price Store Protocol - Abstract interface for cached unit prices.

Implementations:
- InMemoryPriceStore: process-lifetime tier, optionally backed by another store
- FileSystemPriceStore: one JSON record per key, survives restarts

Freshness is evaluated at read time against ``ttl_hours``. Stale entries
are still returned (``fresh=False``) so callers can fall back to them when
a refresh fails; entries are never deleted implicitly.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from costdelta.core.schema import CacheEntry, CacheKey, CacheLookup

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PriceStore(ABC):
    """
    Key/value store of resolved unit prices.

    All methods are synchronous and safe to call from worker threads.
    """

    def __init__(self, ttl_hours: float = 24.0, clock: Optional[Clock] = None):
        if ttl_hours <= 0:
            raise ValueError("ttl_hours must be positive")
        self.ttl_hours = ttl_hours
        self._clock = clock or utc_now

    @abstractmethod
    def get_entry(self, key: CacheKey) -> Optional[CacheEntry]:
        """Raw entry for a key regardless of freshness."""
        ...

    @abstractmethod
    def put_entry(self, entry: CacheEntry) -> None:
        """Store an entry, replacing any previous one for the key."""
        ...

    @abstractmethod
    def entries(self) -> List[CacheEntry]:
        """All stored entries."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""
        ...

    def now(self) -> datetime:
        return self._clock()

    def get(self, key: CacheKey) -> Optional[CacheLookup]:
        """Cached price and freshness, or None on a miss."""
        entry = self.get_entry(key)
        if entry is None:
            return None
        return CacheLookup(price=entry.price, fresh=entry.is_fresh(self.now()))

    def put(self, key: CacheKey, price: Optional[Decimal]) -> None:
        """Record a successful lookup fetched now."""
        self.put_entry(
            CacheEntry(key=key, price=price, fetched_at=self.now(), ttl_hours=self.ttl_hours)
        )

    def has_fresh_cache(self, key: CacheKey) -> bool:
        lookup = self.get(key)
        return lookup is not None and lookup.fresh

    def stats(self) -> Dict[str, int]:
        now = self.now()
        entries = self.entries()
        fresh = sum(1 for e in entries if e.is_fresh(now))
        return {
            "total_entries": len(entries),
            "fresh_entries": fresh,
            "stale_entries": len(entries) - fresh,
        }
