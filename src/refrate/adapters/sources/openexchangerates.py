# src/refrate/adapters/sources/openexchangerates.py
"""
Open Exchange Rates Provider (time-series endpoint)

Secondary rate source. The time-series endpoint is queried with start=end=the
requested date, but the value is read from the bucket keyed by the *current*
local date, and the result is cached in a file named after the current date:

    rates[<today>][<symbol>]            ->  exchange_rate_<today>.json

So within one calendar day every query returns the same number regardless of
the date asked for. Existing consumers depend on this behavior; keep it until
the endpoint's keying is confirmed against the live API.

Files that USE this module:
- refrate.app (builds the secondary provider when an app id is configured)
- refrate.application.rate_resolver (clear_daily_cache on cache clear)
- tests.test_sources (unit tests)

Files that this module USES:
- refrate.adapters.sources.base (RateProvider interface)
- refrate.adapters.persistence.file_store (atomic JSON read/write)
- refrate.shared.clock (current local date)
- refrate.config (settings for URL, credentials, pair and timeout)
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Union

import requests

from refrate.adapters.persistence.file_store import atomic_write_json, read_json
from refrate.adapters.sources.base import RateProvider
from refrate.config import settings
from refrate.domain.errors import RateSourceError
from refrate.domain.models import RateSource
from refrate.shared.clock import Clock, local_clock
from refrate.shared.validators import validate_api_key

log = logging.getLogger(__name__)

CACHE_PREFIX = "exchange_rate_"


class OpenExchangeRatesProvider(RateProvider):
    kind = RateSource.SECONDARY
    name = "OpenExchangeRates"

    def __init__(
        self,
        app_id: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        base: Optional[str] = None,
        symbol: Optional[str] = None,
        cache_dir: Optional[Union[str, Path]] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize Open Exchange Rates provider.

        Args:
            app_id: Optional API app id (defaults to settings.secondary_app_id)
            base_url: Optional time-series URL (defaults to settings.secondary_url)
            timeout: Optional HTTP timeout in seconds (defaults to settings.secondary_timeout_seconds)
            base: Base currency of the pair (defaults to settings.secondary_base)
            symbol: Quoted currency of the pair (defaults to settings.secondary_symbol)
            cache_dir: Directory for the daily cache file (defaults to settings.data_dir)
            clock: Source of the current local time (defaults to settings.timezone)

        Raises:
            ValueError: If the app id is missing or malformed
        """
        self.app_id = app_id if app_id is not None else settings.secondary_app_id
        if not self.app_id:
            raise ValueError("SECONDARY_RATE_APP_ID is missing or empty.")
        if not validate_api_key(self.app_id):
            raise ValueError("SECONDARY_RATE_APP_ID has an invalid format.")
        self.url = base_url or settings.secondary_url
        self.timeout = timeout or settings.secondary_timeout_seconds
        self.base = (base or settings.secondary_base).upper()
        self.symbol = (symbol or settings.secondary_symbol).upper()
        self.cache_dir = Path(cache_dir) if cache_dir is not None else settings.data_dir
        self.clock = clock or local_clock(settings.timezone)

    def _cache_file(self, current: str) -> Path:
        return self.cache_dir / f"{CACHE_PREFIX}{current}.json"

    def _cached(self, current: str) -> Optional[Decimal]:
        data = read_json(self._cache_file(current))
        if not isinstance(data, dict) or data.get("date") != current:
            return None
        try:
            return Decimal(str(data["exchangeRate"]))
        except (KeyError, InvalidOperation):
            log.warning("Ignoring unreadable daily cache file for %s", current)
            return None

    def query(self, day: date) -> Decimal:
        """
        Get COP per 1 USD (for the configured pair) from the time-series endpoint.

        Raises:
            RateSourceError: If the request fails or the expected bucket is missing
        """
        current = self.clock().date().isoformat()
        cached = self._cached(current)
        if cached is not None:
            log.debug("Using daily cached %s/%s rate: %s", self.base, self.symbol, cached)
            return cached

        params = {
            "app_id": self.app_id,
            "start": day.isoformat(),
            "end": day.isoformat(),
            "base": self.base,
            "symbols": self.symbol,
        }
        try:
            log.info("Fetching %s/%s from Open Exchange Rates for %s", self.base, self.symbol, day)
            resp = requests.get(self.url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.exceptions.Timeout:
            raise RateSourceError(f"OpenExchangeRates timeout after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            raise RateSourceError(f"OpenExchangeRates request failed: {e}") from e
        except ValueError as e:
            raise RateSourceError(f"OpenExchangeRates returned invalid JSON: {e}") from e

        try:
            raw = data["rates"][current][self.symbol]
            value = Decimal(str(raw))
        except (KeyError, TypeError, InvalidOperation) as e:
            log.warning("OpenExchangeRates response has no rates[%s][%s]", current, self.symbol)
            raise RateSourceError(f"OpenExchangeRates missing rate for {current}") from e
        if not value.is_finite() or value <= 0:
            raise RateSourceError(f"OpenExchangeRates returned unusable value {raw!r}")

        try:
            atomic_write_json(self._cache_file(current), {"exchangeRate": str(value), "date": current})
        except RuntimeError as e:
            log.warning("Could not write daily cache file: %s", e)
        return value

    def clear_daily_cache(self) -> int:
        """Delete every daily cache file; returns how many were removed."""
        removed = 0
        if not self.cache_dir.exists():
            return removed
        for path in self.cache_dir.glob(f"{CACHE_PREFIX}*.json"):
            path.unlink()
            removed += 1
        log.info("Removed %d daily exchange-rate cache file(s)", removed)
        return removed
