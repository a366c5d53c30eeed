# src/refrate/application/daily_rates.py
"""
Daily Rates - Filling the Historical Rate Table

Stores resolved rates in the historical table (trm_daily), one row per date,
with weekend and fixed-holiday flags. Only rates that came from the cache or
a remote source are stored; emergency and default values never become
historical rows.

Files that USE this module:
- refrate.app (CLI fetch-rate command)
- tests.test_daily_rates (unit tests)

Files that this module USES:
- refrate.application.rate_resolver (RateResolver)
- refrate.adapters.persistence.repositories (HistoricalRateRepository)
- refrate.domain.calendar (is_weekend, is_fixed_holiday)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from refrate.adapters.persistence.repositories import HistoricalRateRepository
from refrate.application.rate_resolver import RateResolver
from refrate.domain.calendar import is_fixed_holiday, is_weekend
from refrate.domain.models import RateSource
from refrate.shared.clock import Clock

log = logging.getLogger(__name__)

STORABLE_SOURCES = frozenset({RateSource.CACHE, RateSource.PRIMARY, RateSource.SECONDARY})


@dataclass(frozen=True)
class FetchResult:
    date: date
    stored: bool
    existed: bool = False
    value: Optional[Decimal] = None
    source: Optional[RateSource] = None
    message: str = ""


class DailyRateFetcher:
    def __init__(self, resolver: RateResolver, historical: HistoricalRateRepository, clock: Clock):
        self.resolver = resolver
        self.historical = historical
        self.clock = clock

    def fetch(self, day: Optional[date] = None, force: bool = False) -> FetchResult:
        """
        Resolve and store the rate for one date (today by default).

        An existing row is left alone unless force is set.
        """
        day = day or self.clock().date()

        if not force and self.historical.exists(day):
            existing = self.historical.get(day)
            return FetchResult(date=day, stored=False, existed=True, value=existing,
                               message=f"Rate already stored for {day}: {existing}")

        quote = self.resolver.resolve(day)
        if quote.source not in STORABLE_SOURCES:
            log.warning("Not storing %s rate %s for %s", quote.source.value, quote.value, day)
            return FetchResult(date=day, stored=False, value=quote.value, source=quote.source,
                               message=f"No authoritative rate for {day} (got {quote.source.value})")

        self.historical.upsert(
            day,
            quote.value,
            quote.source,
            is_weekend=is_weekend(day),
            is_holiday=is_fixed_holiday(day),
            fetched_at=self.clock().replace(tzinfo=None),
        )
        log.info("Stored rate for %s: %s (%s)", day, quote.value, quote.source.value)
        return FetchResult(date=day, stored=True, value=quote.value, source=quote.source,
                           message=f"Rate stored for {day}")

    def fetch_recent(self, days: int, force: bool = False) -> List[FetchResult]:
        """Fetch the last N days, oldest first, ending today."""
        if days < 1:
            raise ValueError("days must be at least 1")
        today = self.clock().date()
        return [self.fetch(today - timedelta(days=offset), force=force) for offset in range(days - 1, -1, -1)]

    def warm_missing(self, start: date, end: date) -> List[FetchResult]:
        """Store rates for confirmed dispatch dates in [start, end] that have no row yet."""
        missing = self.historical.missing_dispatch_dates(start, end)
        if missing:
            log.info("Warming %d missing historical rate(s) between %s and %s", len(missing), start, end)
        return [self.fetch(day, force=True) for day in missing]
