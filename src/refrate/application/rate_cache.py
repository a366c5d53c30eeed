# src/refrate/application/rate_cache.py
"""
Rate Cache - Two-Level Date-Keyed Rate Cache

Holds resolved rates in an in-process map backed by the persistent JSON
cache store, plus the last-known-good record. Never performs network I/O:
a miss returns None and fetching stays with the resolver.

Expiry is fixed when an entry is written, from how its date relates to the
local "today":
- past date   -> now + 30 days (configurable)
- today       -> next local midnight
- future date -> now + 60 minutes (configurable)

Files that USE this module:
- refrate.application.rate_resolver (RateResolver reads and fills the cache)
- refrate.app (builds the shared RateCache)
- tests.test_rate_cache (unit tests)

Files that this module USES:
- refrate.adapters.persistence.file_store (JsonCacheStore, last-known-good persistence)
- refrate.domain.normalizer (is_usable)
- refrate.shared.clock (Clock type)
"""
from __future__ import annotations

import logging
import threading
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Dict, Optional, Union

from refrate.adapters.persistence.file_store import (
    JsonCacheStore,
    LastKnownGoodRate,
    RateCacheEntry,
    clear_last_known_good,
    load_last_known_good,
    save_last_known_good,
)
from refrate.domain.errors import InvalidRateError
from refrate.domain.models import MAX_VALID_RATE, MIN_VALID_RATE, RateQuote, RateSource
from refrate.domain.normalizer import is_usable
from refrate.shared.clock import Clock

logger = logging.getLogger(__name__)


class RateCache:
    """Process-wide rate cache; construct once and inject where needed."""

    def __init__(
        self,
        store: JsonCacheStore,
        last_known_good_path: Union[str, Path],
        clock: Clock,
        past_ttl_days: int = 30,
        future_ttl_minutes: int = 60,
    ):
        """
        Initialize the cache.

        Args:
            store: Persistent store for date-keyed entries
            last_known_good_path: JSON file holding the last-known-good record
            clock: Source of the current local time
            past_ttl_days: Lifetime of entries for dates before today
            future_ttl_minutes: Lifetime of entries for dates after today
        """
        self.store = store
        self.last_known_good_path = Path(last_known_good_path)
        self.clock = clock
        self.past_ttl = timedelta(days=past_ttl_days)
        self.future_ttl = timedelta(minutes=future_ttl_minutes)
        self._memory: Dict[date, RateCacheEntry] = {}
        self._lock = threading.Lock()

    def expiry_for(self, day: date) -> datetime:
        """
        Compute when an entry for the given date written now should expire.

        Returns:
            Expiry instant in the clock's timezone
        """
        now = self.clock()
        today = now.date()
        if day < today:
            return now + self.past_ttl
        if day == today:
            return datetime.combine(today + timedelta(days=1), time.min, tzinfo=now.tzinfo)
        return now + self.future_ttl

    def get(self, day: date) -> Optional[Decimal]:
        """
        Look the date up in memory, then in the persistent store.

        Persistent hits are promoted to memory. Expired entries and entries
        whose value is not a usable rate count as misses.
        """
        now = self.clock()
        with self._lock:
            entry = self._memory.get(day)
            if entry is not None:
                if not entry.is_expired(now) and is_usable(entry.value):
                    return entry.value
                del self._memory[day]

        entry = self.store.get(day, now)
        if entry is None:
            return None
        if not is_usable(entry.value):
            logger.debug("Ignoring cached value %s for %s (outside valid range)", entry.value, day)
            return None

        with self._lock:
            self._memory[day] = entry
        return entry.value

    def put(self, day: date, value: Decimal, source: RateSource) -> RateCacheEntry:
        """
        Write a resolved rate to both tiers.

        Raises:
            InvalidRateError: If value is not within (MIN_VALID_RATE, MAX_VALID_RATE]

        Note:
            The in-memory tier is updated even if the disk write fails
        """
        if not is_usable(value):
            raise InvalidRateError(
                f"Refusing to cache {value} for {day}: outside ({MIN_VALID_RATE}, {MAX_VALID_RATE}]"
            )
        entry = RateCacheEntry(date=day, value=value, source=source, expires_at=self.expiry_for(day))
        with self._lock:
            self._memory[day] = entry
        try:
            self.store.put(entry)
        except RuntimeError as e:
            logger.error("Failed to persist cached rate for %s: %s", day, e)
        return entry

    def clear(self, include_emergency: bool = False) -> int:
        """
        Drop every cached entry, optionally the last-known-good record too.

        Returns:
            Number of persistent entries removed
        """
        with self._lock:
            self._memory.clear()
        removed = self.store.clear()
        if include_emergency and clear_last_known_good(self.last_known_good_path):
            logger.info("Last-known-good rate cleared")
        logger.info("Rate cache cleared (%d persistent entries)", removed)
        return removed

    def clear_one(self, day: date) -> bool:
        with self._lock:
            in_memory = self._memory.pop(day, None) is not None
        on_disk = self.store.delete(day)
        return in_memory or on_disk

    def last_known_good(self) -> Optional[LastKnownGoodRate]:
        return load_last_known_good(self.last_known_good_path)

    def remember_last_known_good(self, quote: RateQuote) -> None:
        """Persist a freshly fetched quote as the emergency fallback."""
        record = LastKnownGoodRate(
            value=quote.value,
            date=quote.date,
            source=quote.source,
            saved_at=self.clock(),
        )
        try:
            save_last_known_good(self.last_known_good_path, record)
        except RuntimeError as e:
            logger.error("Failed to persist last-known-good rate: %s", e)

    def memory_size(self) -> int:
        with self._lock:
            return len(self._memory)

    def persistent_size(self) -> int:
        return self.store.count()
