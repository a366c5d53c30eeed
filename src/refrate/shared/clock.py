# src/refrate/shared/clock.py
"""
Clock - Local Time Source

Every component that classifies dates (today / past / future) or stamps
records takes a clock callable instead of calling datetime.now() directly,
so tests can pin the current time.

Files that USE this module:
- refrate.application.rate_cache (TTL classification)
- refrate.application.rate_resolver (current date for the secondary source)
- refrate.adapters.sources.openexchangerates (daily file cache key)
- refrate.app (builds the default clock)
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]


def local_clock(tz_name: str) -> Clock:
    """
    Build a clock returning timezone-aware "now" in the given zone.

    Args:
        tz_name: IANA timezone name (e.g. "America/Bogota")

    Returns:
        Zero-argument callable returning the current aware datetime
    """
    tz = ZoneInfo(tz_name)

    def _now() -> datetime:
        return datetime.now(tz)

    return _now


def fixed_clock(moment: datetime) -> Clock:
    """Clock that always returns the same instant."""
    return lambda: moment
