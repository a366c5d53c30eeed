# src/refrate/application/effective_rate.py
"""
Effective Rate Resolver - Rate Applied to One Dispatch Event

Cascade, first match wins:
1. the rate typed on the event, when it normalizes into the valid range
2. the historical table rate for the event's date
3. the order's own rate, when above MIN_VALID_RATE
4. the resolver's quote for the date (when a resolver is wired in),
   otherwise the static default

The tier that answered is returned with the value; only tier 1 counts as a
custom rate.

Files that USE this module:
- refrate.application.statistics (every dispatch event and planned line)
- tests.test_effective_rate (unit tests)

Files that this module USES:
- refrate.adapters.persistence.repositories (HistoricalRateRepository)
- refrate.application.rate_resolver (optional live fallback)
- refrate.domain.normalizer (normalize_with_flags, is_valid_range, is_usable)
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from refrate.adapters.persistence.repositories import HistoricalRateRepository
from refrate.application.rate_resolver import RateResolver
from refrate.domain.models import DEFAULT_RATE, EffectiveRate, RateSource, RateTier
from refrate.domain.normalizer import is_usable, is_valid_range, normalize, normalize_with_flags

log = logging.getLogger(__name__)


class EffectiveRateResolver:
    """Per-event rate selection with a memoized view of the historical table."""

    def __init__(
        self,
        historical: HistoricalRateRepository,
        resolver: Optional[RateResolver] = None,
        default_rate: Decimal = DEFAULT_RATE,
    ):
        self.historical = historical
        self.resolver = resolver
        self.default_rate = default_rate
        self._known: Dict[date, Optional[Decimal]] = {}

    def reset(self) -> None:
        """Forget memoized historical rates (the table may have changed)."""
        self._known.clear()

    def prime(self, start: date, end: date) -> None:
        """Load the historical table for [start, end] in one query."""
        rates = self.historical.window(start, end)
        current = start
        while current <= end:
            self._known[current] = rates.get(current)
            current += timedelta(days=1)
        log.debug("Primed %d historical rates for %s..%s", len(rates), start, end)

    def historical_rate(self, day: date) -> Optional[Decimal]:
        """Historical table value for the date when it is a valid rate, else None."""
        if day not in self._known:
            self._known[day] = self.historical.get(day)
        value = self._known[day]
        if value is None or not is_valid_range(value):
            return None
        return value

    def fallback(self, day: Optional[date]) -> EffectiveRate:
        if self.resolver is not None and day is not None:
            quote = self.resolver.resolve(day)
            tier = RateTier.DEFAULT if quote.source == RateSource.DEFAULT else RateTier.RESOLVED
            return EffectiveRate(value=quote.value, tier=tier)
        return EffectiveRate(value=self.default_rate, tier=RateTier.DEFAULT)

    def resolve(self, event_rate: Any, on_date: Optional[date], order_rate: Any = None) -> EffectiveRate:
        """
        Select the rate for one event.

        Args:
            event_rate: Raw rate typed on the event (any representation, may be None)
            on_date: Dispatch date of the event
            order_rate: The order's own rate, if any

        Returns:
            EffectiveRate with the value and the tier that supplied it
        """
        flagged = normalize_with_flags(event_rate)
        if flagged.is_valid and is_valid_range(flagged.value):
            return EffectiveRate(value=flagged.value, tier=RateTier.EVENT)

        if on_date is not None:
            historical = self.historical_rate(on_date)
            if historical is not None:
                return EffectiveRate(value=historical, tier=RateTier.HISTORICAL)

        if order_rate is not None:
            order_value = normalize(order_rate)
            if is_usable(order_value):
                return EffectiveRate(value=order_value, tier=RateTier.ORDER)

        return self.fallback(on_date)
