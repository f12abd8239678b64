"""
Pricing client - cached, retrying unit-price lookups.

Lookup flow for a query:
1. Fresh entry in the price store -> return it, no network call
2. Fetch from the source (retrying throttling and 5xx responses)
3. Success -> write through to the store (including "no match" results)
4. Failure -> return the stale stored value if there is one, else raise
"""
from __future__ import annotations

import logging
import threading
import time
from decimal import Decimal
from typing import Callable, Dict, Optional

from costdelta.core.errors import CredentialError, PricingLookupError
from costdelta.core.schema import CacheKey
from costdelta.pricing.regions import normalize_region
from costdelta.pricing.source import PriceQuery, PriceSource
from costdelta.storage.memory import InMemoryPriceStore
from costdelta.storage.protocol import PriceStore

log = logging.getLogger(__name__)


def cache_key_for(query: PriceQuery) -> CacheKey:
    return CacheKey.build(
        query.service_code,
        normalize_region(query.region),
        ((f.field, f.value) for f in query.filters),
    )


class PricingClient:
    """
    Resolve unit prices through a price store and a price source.

    Safe to share between worker threads. Concurrent lookups of the same
    key are serialized, so a cold key is fetched once.
    """

    def __init__(
        self,
        source: PriceSource,
        store: Optional[PriceStore] = None,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._source = source
        self._store = store if store is not None else InMemoryPriceStore()
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._sleep = sleep
        self._log = logger or log
        self._key_locks: Dict[CacheKey, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._credential_error: Optional[CredentialError] = None

    @property
    def store(self) -> PriceStore:
        return self._store

    def _lock_for(self, key: CacheKey) -> threading.Lock:
        with self._locks_guard:
            return self._key_locks.setdefault(key, threading.Lock())

    def get_price(self, query: PriceQuery) -> Optional[Decimal]:
        """
        Unit price for a query, or None when the source has no match.

        Raises:
            PricingLookupError: If the lookup failed and nothing is cached.
        """
        key = cache_key_for(query)
        with self._lock_for(key):
            cached = self._store.get(key)
            if cached is not None and cached.fresh:
                self._log.debug("Price cache hit: %s", key)
                return cached.price

            if self._credential_error is not None:
                return self._fallback(key, cached, self._credential_error)

            try:
                price = self._fetch_with_retry(query, normalize_region(query.region))
            except CredentialError as e:
                self._credential_error = e
                self._log.error("Pricing credentials rejected, skipping further lookups: %s", e)
                return self._fallback(key, cached, e)
            except PricingLookupError as e:
                return self._fallback(key, cached, e)

            self._store.put(key, price)
            return price

    def _fallback(self, key: CacheKey, cached, error: PricingLookupError) -> Optional[Decimal]:
        if cached is not None:
            self._log.warning("Using stale cached price for %s after lookup failure: %s", key, error)
            return cached.price
        raise error

    def _fetch_with_retry(self, query: PriceQuery, location: str) -> Optional[Decimal]:
        for attempt in range(self._max_attempts):
            try:
                return self._source.fetch(query, location)
            except PricingLookupError as e:
                if not e.retryable:
                    raise
                if attempt == self._max_attempts - 1:
                    raise PricingLookupError(
                        f"Failed to fetch pricing after {self._max_attempts} attempts: {e}"
                    ) from e
                delay = self._delay(e, attempt)
                self._log.debug(
                    "Retrying %s in %.2fs (attempt %d/%d): %s",
                    query.service_code, delay, attempt + 1, self._max_attempts, e,
                )
                self._sleep(delay)
        raise AssertionError("unreachable")

    def _delay(self, error: PricingLookupError, attempt: int) -> float:
        if error.retry_after is not None:
            return min(error.retry_after, self._max_delay)
        return min(self._base_delay * (2 ** attempt), self._max_delay)
