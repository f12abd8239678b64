"""
In-Memory Price Store - process-lifetime tier of the price cache.

When constructed with a ``backing`` store, a key that misses in memory is
loaded from the backing store once and kept in memory afterwards; writes
go through to the backing store.
"""
from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, List, Optional, Set

from costdelta.core.schema import CacheEntry, CacheKey
from costdelta.storage.protocol import Clock, PriceStore


class InMemoryPriceStore(PriceStore):
    """Dictionary-backed store, optionally layered over a durable store."""

    def __init__(
        self,
        ttl_hours: float = 24.0,
        backing: Optional[PriceStore] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(ttl_hours=ttl_hours, clock=clock)
        self._backing = backing
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._consulted: Set[CacheKey] = set()
        self._lock = threading.Lock()

    @property
    def backing(self) -> Optional[PriceStore]:
        return self._backing

    def get_entry(self, key: CacheKey) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is not None or self._backing is None or key in self._consulted:
            return entry

        loaded = self._backing.get_entry(key)
        with self._lock:
            self._consulted.add(key)
            current = self._entries.get(key)
            if loaded is not None and current is None:
                self._entries[key] = replace(loaded, ttl_hours=self.ttl_hours)
            return self._entries.get(key)

    def put_entry(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[entry.key] = entry
            self._consulted.add(entry.key)
        if self._backing is not None:
            self._backing.put_entry(entry)

    def entries(self) -> List[CacheEntry]:
        return list(self._entries.values())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._consulted.clear()
        if self._backing is not None:
            self._backing.clear()
