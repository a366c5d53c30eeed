# tests/test_daily_rates.py
"""
Daily Rates Tests - Storing Resolved Rates in the Historical Table

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- refrate.application.daily_rates (DailyRateFetcher)
- refrate.adapters.persistence.repositories (HistoricalRateRepository over SQLite)
- unittest.mock (Mock resolver)
"""
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import Mock  # Mock resolver

import pytest  # Testing framework for writing and running tests
from sqlalchemy import select

from refrate.adapters.persistence.repositories import HistoricalRateRepository
from refrate.adapters.persistence.tables import trm_daily
from refrate.application.daily_rates import DailyRateFetcher
from refrate.domain.models import RateQuote, RateSource


def _resolver(source=RateSource.PRIMARY, value="3921.56"):
    resolver = Mock()
    resolver.resolve.side_effect = lambda day: RateQuote(day, Decimal(value), source)
    return resolver


class TestDailyRateFetcher:
    def test_stores_today_with_flags(self, db, clock):
        fetcher = DailyRateFetcher(_resolver(), HistoricalRateRepository(db), clock)

        result = fetcher.fetch()

        assert result.stored
        assert result.date == date(2024, 3, 15)
        with db.session_scope() as session:
            row = session.execute(select(trm_daily)).mappings().one()
        assert row["value"] == Decimal("3921.56")
        assert row["source"] == "primary"
        assert row["is_weekend"] is False
        assert row["fetched_at"] == datetime(2024, 3, 15, 10, 30)

    def test_weekend_and_holiday_flags(self, db, clock):
        historical = HistoricalRateRepository(db)
        fetcher = DailyRateFetcher(_resolver(), historical, clock)

        fetcher.fetch(date(2024, 1, 1))
        fetcher.fetch(date(2024, 3, 9))

        with db.session_scope() as session:
            rows = {r["date"]: r for r in session.execute(select(trm_daily)).mappings().all()}
        assert rows[date(2024, 1, 1)]["is_holiday"] is True
        assert rows[date(2024, 3, 9)]["is_weekend"] is True

    def test_existing_row_is_kept(self, db, seed, clock):
        seed.rate(date(2024, 3, 15), "3900")
        resolver = _resolver()
        fetcher = DailyRateFetcher(resolver, HistoricalRateRepository(db), clock)

        result = fetcher.fetch()

        assert result.existed
        assert not result.stored
        assert result.value == Decimal("3900")
        resolver.resolve.assert_not_called()

    def test_force_overwrites(self, db, seed, clock):
        seed.rate(date(2024, 3, 15), "3900")
        historical = HistoricalRateRepository(db)

        DailyRateFetcher(_resolver(), historical, clock).fetch(force=True)

        assert historical.get(date(2024, 3, 15)) == Decimal("3921.56")

    @pytest.mark.parametrize("source", [RateSource.EMERGENCY, RateSource.DEFAULT])
    def test_fallback_values_are_not_stored(self, db, clock, source):
        historical = HistoricalRateRepository(db)
        result = DailyRateFetcher(_resolver(source, "4000"), historical, clock).fetch()

        assert not result.stored
        assert result.source == source
        assert not historical.exists(date(2024, 3, 15))

    def test_fetch_recent_oldest_first(self, db, clock):
        results = DailyRateFetcher(_resolver(), HistoricalRateRepository(db), clock).fetch_recent(3)
        assert [r.date for r in results] == [date(2024, 3, 13), date(2024, 3, 14), date(2024, 3, 15)]

    def test_warm_missing(self, db, seed, clock):
        client = seed.client()
        product = seed.product()
        order = seed.order(client, datetime(2024, 3, 1))
        seed.event(order, product, 1, dispatch_date=date(2024, 3, 5))
        seed.event(order, product, 1, dispatch_date=date(2024, 3, 6))
        seed.rate(date(2024, 3, 6), "3950")
        resolver = _resolver()

        results = DailyRateFetcher(resolver, HistoricalRateRepository(db), clock).warm_missing(
            date(2024, 3, 1), date(2024, 3, 31)
        )

        assert [r.date for r in results] == [date(2024, 3, 5)]
        resolver.resolve.assert_called_once_with(date(2024, 3, 5))
