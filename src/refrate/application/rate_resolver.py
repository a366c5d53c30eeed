# src/refrate/application/rate_resolver.py
"""
Rate Resolver - Cascading Reference-Rate Lookup

Resolves the USD→COP rate for a calendar date, trying each tier in order and
stopping at the first value in (MIN_VALID_RATE, MAX_VALID_RATE]:

1. in-process cache
2. persistent cache
3. primary source (Superfinanciera)
4. secondary source (Open Exchange Rates)
5. last-known-good record
6. static default (4000)

Values obtained from tiers 3-4 are written to both cache tiers and become the
new last-known-good record. Source failures are logged and the cascade moves
on; resolve() always returns a quote and never raises. A tier is tried at
most once per call.

Concurrent misses for the same date wait on a per-date lock and re-check the
cache, so only one of them reaches the network.

Files that USE this module:
- refrate.application.effective_rate (fallback tier)
- refrate.application.daily_rates (DailyRateFetcher)
- refrate.app (CLI resolve / clear-cache / status)
- tests.test_rate_resolver (unit tests)

Files that this module USES:
- refrate.application.rate_cache (RateCache)
- refrate.adapters.sources.base (RateProvider interface)
- refrate.domain.models (RateQuote, SourceResult, constants)
- refrate.domain.normalizer (is_usable)
"""
from __future__ import annotations  # Enable postponed evaluation of annotations

import logging
import threading
import weakref
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from refrate.adapters.sources.base import RateProvider
from refrate.application.rate_cache import RateCache
from refrate.domain.models import DEFAULT_RATE, MIN_VALID_RATE, RateQuote, RateSource, SourceResult
from refrate.domain.normalizer import is_usable
from refrate.shared.clock import Clock

log = logging.getLogger(__name__)


class RateResolver:
    """
    Tiered resolver over a shared RateCache and up to two remote providers.
    Tracks which tier answered the last resolution.
    """

    def __init__(
        self,
        cache: RateCache,
        primary: Optional[RateProvider],
        secondary: Optional[RateProvider],
        clock: Clock,
        default_rate: Decimal = DEFAULT_RATE,
    ):
        """
        Initialize the resolver.

        Args:
            cache: Shared two-level cache (also holds the last-known-good record)
            primary: Primary provider, or None when not configured
            secondary: Secondary provider, or None when not configured
            clock: Source of the current local time
            default_rate: Terminal fallback value
        """
        self.cache = cache
        self.primary = primary
        self.secondary = secondary
        self.clock = clock
        self.default_rate = default_rate
        self.last_source: Optional[RateSource] = None
        # Entries vanish once no caller holds the lock for that date
        self._date_locks: "weakref.WeakValueDictionary[date, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, day: date) -> threading.Lock:
        with self._locks_guard:
            lock = self._date_locks.get(day)
            if lock is None:
                lock = self._date_locks[day] = threading.Lock()
            return lock

    def _providers(self) -> List[RateProvider]:
        return [p for p in (self.primary, self.secondary) if p is not None]

    @staticmethod
    def _ask(provider: RateProvider, day: date) -> SourceResult:
        try:
            return provider.fetch(day)
        except Exception as e:
            # Anything a provider lets slip is still just a failed tier
            log.error("%s raised unexpectedly for %s: %s", provider.name, day, e, exc_info=True)
            return SourceResult.failure(provider.kind, f"unexpected error: {e}")

    def _accept(self, day: date, result: SourceResult) -> Optional[RateQuote]:
        if not result.ok:
            log.info("%s tier failed for %s: %s", result.source.value, day, result.error)
            return None
        if not is_usable(result.value):
            log.warning("%s tier returned out-of-range value %s for %s", result.source.value, result.value, day)
            return None

        quote = RateQuote(date=day, value=result.value, source=result.source)  # type: ignore[arg-type]
        try:
            self.cache.put(day, quote.value, quote.source)
            self.cache.remember_last_known_good(quote)
        except Exception as e:
            log.error("Could not store %s rate for %s: %s", quote.source.value, day, e)
        return quote

    def _cached(self, day: date) -> Optional[RateQuote]:
        try:
            value = self.cache.get(day)
        except Exception as e:
            log.error("Rate cache read failed for %s, treating as a miss: %s", day, e)
            return None
        if value is None:
            return None
        return RateQuote(date=day, value=value, source=RateSource.CACHE)

    def _emergency(self, day: date) -> Optional[RateQuote]:
        try:
            record = self.cache.last_known_good()
            usable = record is not None and record.value.is_finite() and record.value > MIN_VALID_RATE
        except Exception as e:
            log.error("Last-known-good read failed, skipping emergency tier: %s", e)
            return None
        if not usable:
            return None
        log.warning("All sources failed for %s, using last-known-good %s from %s", day, record.value, record.date)
        return RateQuote(date=day, value=record.value, source=RateSource.EMERGENCY)

    def _finish(self, quote: RateQuote) -> RateQuote:
        self.last_source = quote.source
        return quote

    def resolve(self, day: date) -> RateQuote:
        """
        Resolve the rate for a date.

        Returns:
            RateQuote whose value is always > 0
        """
        cached = self._cached(day)
        if cached is not None:
            return self._finish(cached)

        with self._lock_for(day):
            # Another caller may have filled the cache while we waited
            cached = self._cached(day)
            if cached is not None:
                return self._finish(cached)

            for provider in self._providers():
                quote = self._accept(day, self._ask(provider, day))
                if quote is not None:
                    log.info("Resolved rate for %s from %s: %s", day, quote.source.value, quote.value)
                    return self._finish(quote)

            emergency = self._emergency(day)
            if emergency is not None:
                return self._finish(emergency)

            log.error("All sources failed for %s and no last-known-good rate, using default %s",
                      day, self.default_rate)
            return self._finish(RateQuote(date=day, value=self.default_rate, source=RateSource.DEFAULT))

    def resolve_range(self, start: date, end: date) -> Dict[date, RateQuote]:
        """Resolve every date from start to end inclusive."""
        if end < start:
            raise ValueError(f"end ({end}) is before start ({start})")
        quotes: Dict[date, RateQuote] = {}
        current = start
        while current <= end:
            quotes[current] = self.resolve(current)
            current += timedelta(days=1)
        return quotes

    def clear_cache(self, include_emergency: bool = False) -> Dict[str, int]:
        """
        Drop cached rates, including the secondary provider's daily files.

        Returns:
            Counts of removed entries per store
        """
        removed = {"cache_entries": self.cache.clear(include_emergency=include_emergency)}
        clear_daily = getattr(self.secondary, "clear_daily_cache", None)
        if callable(clear_daily):
            removed["daily_files"] = clear_daily()
        return removed

    def clear_date(self, day: date) -> bool:
        return self.cache.clear_one(day)

    def status(self) -> Dict[str, Any]:
        """Diagnostic summary: today's quote, last-known-good record and cache sizes."""
        today = self.clock().date()
        quote = self.resolve(today)
        record = self.cache.last_known_good()
        return {
            "date": today.isoformat(),
            "rate": str(quote.value),
            "source": quote.source.value,
            "last_known_good": record.to_json() if record else None,
            "memory_entries": self.cache.memory_size(),
            "persistent_entries": self.cache.persistent_size(),
            "primary_configured": self.primary is not None,
            "secondary_configured": self.secondary is not None,
        }
