# src/refrate/adapters/sources/base.py
"""
Base Provider Interface for Reference-Rate Sources

This module defines the abstract base class for remote rate sources. Concrete
providers implement query() and raise RateSourceError on any transport,
timeout or response problem; fetch() turns that into a tagged SourceResult
so the resolver never has to catch exceptions from a source.

Files that USE this module:
- refrate.adapters.sources.superfinanciera (SuperfinancieraProvider)
- refrate.adapters.sources.openexchangerates (OpenExchangeRatesProvider)
- refrate.application.rate_resolver (RateProvider type)
- tests.test_sources (unit tests)

Files that this module USES:
- refrate.domain.models (SourceResult, RateSource)
- refrate.domain.errors (RateSourceError)
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal

from refrate.domain.errors import RateSourceError
from refrate.domain.models import RateSource, SourceResult

log = logging.getLogger(__name__)


class RateProvider(ABC):
    kind: RateSource
    name: str = "provider"

    @abstractmethod
    def query(self, day: date) -> Decimal:
        """Return COP per 1 USD for the date; raise RateSourceError on failure."""
        raise NotImplementedError

    def fetch(self, day: date) -> SourceResult:
        """
        Query the source and wrap the outcome.

        Returns:
            SourceResult.success with the value, or SourceResult.failure with the reason
        """
        try:
            value = self.query(day)
        except RateSourceError as e:
            log.warning("%s failed for %s: %s", self.name, day, e)
            return SourceResult.failure(self.kind, str(e))
        return SourceResult.success(self.kind, value)
