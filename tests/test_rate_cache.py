# tests/test_rate_cache.py
"""
Rate Cache Tests - Two-Level Cache, Expiry Policy and Last-Known-Good

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- refrate.application.rate_cache (RateCache)
- refrate.shared.clock (fixed_clock to move time forward)
"""
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest  # Testing framework for writing and running tests

from refrate.application.rate_cache import RateCache
from refrate.domain.errors import InvalidRateError
from refrate.domain.models import RateQuote, RateSource
from refrate.shared.clock import fixed_clock

TODAY = date(2024, 3, 15)


class TestExpiry:
    def test_past_date_lives_thirty_days(self, rate_cache, now):
        assert rate_cache.expiry_for(date(2024, 3, 1)) == now + timedelta(days=30)

    def test_today_expires_at_next_midnight(self, rate_cache, now):
        expiry = rate_cache.expiry_for(TODAY)
        assert expiry == datetime(2024, 3, 16, 0, 0, tzinfo=now.tzinfo)

    def test_future_date_lives_one_hour(self, rate_cache, now):
        assert rate_cache.expiry_for(date(2024, 3, 20)) == now + timedelta(minutes=60)

    def test_custom_ttls(self, cache_store, tmp_path, clock, now):
        cache = RateCache(cache_store, tmp_path / "lkg.json", clock, past_ttl_days=2, future_ttl_minutes=5)
        assert cache.expiry_for(date(2024, 3, 1)) == now + timedelta(days=2)
        assert cache.expiry_for(date(2024, 3, 20)) == now + timedelta(minutes=5)


class TestGetPut:
    def test_miss(self, rate_cache):
        assert rate_cache.get(TODAY) is None

    def test_put_fills_both_tiers(self, rate_cache):
        rate_cache.put(TODAY, Decimal("3950.25"), RateSource.PRIMARY)
        assert rate_cache.get(TODAY) == Decimal("3950.25")
        assert rate_cache.memory_size() == 1
        assert rate_cache.persistent_size() == 1

    def test_persistent_hit_is_promoted(self, rate_cache, cache_store, tmp_path, clock):
        rate_cache.put(TODAY, Decimal("3950.25"), RateSource.PRIMARY)

        fresh = RateCache(cache_store, tmp_path / "last_known_good.json", clock)
        assert fresh.memory_size() == 0
        assert fresh.get(TODAY) == Decimal("3950.25")
        assert fresh.memory_size() == 1

    def test_entry_expires(self, cache_store, tmp_path, now):
        writer = RateCache(cache_store, tmp_path / "lkg.json", fixed_clock(now))
        writer.put(date(2024, 3, 20), Decimal("4100"), RateSource.SECONDARY)

        later = RateCache(cache_store, tmp_path / "lkg.json", fixed_clock(now + timedelta(minutes=61)))
        assert later.get(date(2024, 3, 20)) is None

    @pytest.mark.parametrize("value", ["3800", "3000", "10000.01", "0"])
    def test_rejects_unusable_values(self, rate_cache, value):
        with pytest.raises(InvalidRateError):
            rate_cache.put(TODAY, Decimal(value), RateSource.PRIMARY)
        assert rate_cache.get(TODAY) is None

    def test_clear_one(self, rate_cache):
        rate_cache.put(TODAY, Decimal("3950"), RateSource.PRIMARY)
        assert rate_cache.clear_one(TODAY) is True
        assert rate_cache.get(TODAY) is None
        assert rate_cache.clear_one(TODAY) is False


class TestClear:
    def test_clear_keeps_last_known_good_by_default(self, rate_cache):
        rate_cache.put(TODAY, Decimal("3950"), RateSource.PRIMARY)
        rate_cache.remember_last_known_good(RateQuote(TODAY, Decimal("3950"), RateSource.PRIMARY))

        assert rate_cache.clear() == 1
        assert rate_cache.memory_size() == 0
        assert rate_cache.last_known_good().value == Decimal("3950")

    def test_clear_all_drops_last_known_good(self, rate_cache):
        rate_cache.remember_last_known_good(RateQuote(TODAY, Decimal("3950"), RateSource.PRIMARY))
        rate_cache.clear(include_emergency=True)
        assert rate_cache.last_known_good() is None
