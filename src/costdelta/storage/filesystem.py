"""
Filesystem Price Store - Persist resolved prices as JSON records.

Directory structure:
    .costdelta-cache/
    ├── 3f2a...c1.json    {"key": ..., "price": "0.0416", "fetched_at": ...}
    ├── 9be0...7d.json
    └── ...

File names are the SHA-256 of the cache key, so a key maps to the same
record on every run and platform.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from dataclasses import replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, List, Optional

from costdelta.core.schema import CacheEntry, CacheKey
from costdelta.storage.protocol import Clock, PriceStore

log = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = ".costdelta-cache"


class FileSystemPriceStore(PriceStore):
    """
    Durable tier of the price cache.

    Writes are atomic (temp file + rename) and serialized by a lock;
    concurrent writers for the same key resolve last-write-wins.
    """

    def __init__(
        self,
        directory: Optional[Path | str] = None,
        ttl_hours: float = 24.0,
        clock: Optional[Clock] = None,
    ):
        super().__init__(ttl_hours=ttl_hours, clock=clock)
        self._base = Path(directory or DEFAULT_CACHE_DIR)
        self._base.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._base

    def _path(self, key: CacheKey) -> Path:
        digest = hashlib.sha256(key.value.encode("utf-8")).hexdigest()
        return self._base / f"{digest}.json"

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _decode(self, data: Any, path: Path) -> Optional[CacheEntry]:
        try:
            raw_price = data["price"]
            return CacheEntry(
                key=CacheKey(data["key"]),
                price=None if raw_price is None else Decimal(str(raw_price)),
                fetched_at=datetime.fromisoformat(data["fetched_at"]),
                ttl_hours=self.ttl_hours,
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            log.warning("Ignoring unreadable cache record %s: %s", path.name, e)
            return None

    def get_entry(self, key: CacheKey) -> Optional[CacheEntry]:
        path = self._path(key)
        try:
            data = self._read_json(path)
        except (OSError, json.JSONDecodeError) as e:
            log.warning("Ignoring unreadable cache record %s: %s", path.name, e)
            return None
        if data is None:
            return None
        entry = self._decode(data, path)
        if entry is not None and entry.key != key:
            log.warning("Cache record %s belongs to another key, ignoring", path.name)
            return None
        return entry

    def put_entry(self, entry: CacheEntry) -> None:
        record = {
            "key": entry.key.value,
            "price": None if entry.price is None else str(entry.price),
            "fetched_at": entry.fetched_at.isoformat(),
        }
        path = self._path(entry.key)
        with self._lock:
            try:
                fd, tmp_name = tempfile.mkstemp(dir=self._base, suffix=".tmp")
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(record, f, indent=2)
                os.replace(tmp_name, path)
            except OSError as e:
                # write failures are non-fatal
                log.warning("Failed to write cache record for %s: %s", entry.key, e)

    def entries(self) -> List[CacheEntry]:
        result = []
        for path in sorted(self._base.glob("*.json")):
            try:
                data = self._read_json(path)
            except (OSError, json.JSONDecodeError) as e:
                log.warning("Ignoring unreadable cache record %s: %s", path.name, e)
                continue
            entry = self._decode(data, path) if data is not None else None
            if entry is not None:
                result.append(replace(entry, ttl_hours=self.ttl_hours))
        return result

    def clear(self) -> None:
        with self._lock:
            for path in self._base.glob("*.json"):
                path.unlink(missing_ok=True)
