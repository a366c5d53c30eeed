# tests/test_dispatch_dates.py
"""
Dispatch Date Tests - Business-Day Calendar and Planned Dispatch Dates

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- refrate.domain.calendar (add_business_days, is_weekend, is_fixed_holiday)
- refrate.application.dispatch_dates (DispatchDateResolver)
"""
from datetime import date, datetime

import pytest  # Testing framework for writing and running tests

from refrate.application.dispatch_dates import DispatchDateResolver
from refrate.domain.calendar import add_business_days, is_fixed_holiday, is_weekend
from refrate.domain.models import DateSource, DispatchEvent, DispatchType


def _event(id, type, dispatch_date, rate=None):
    return DispatchEvent(id=id, order_id=1, product_id=1, quantity=1, type=type,
                         line_id=1, dispatch_date=dispatch_date, rate=rate)


class TestCalendar:
    def test_friday_plus_one_is_monday(self):
        assert add_business_days(date(2024, 1, 5), 1) == date(2024, 1, 8)

    def test_ten_business_days_span_two_weekends(self):
        assert add_business_days(date(2024, 3, 1), 10) == date(2024, 3, 15)

    def test_zero_days_returns_start(self):
        assert add_business_days(date(2024, 3, 2), 0) == date(2024, 3, 2)

    def test_datetime_is_truncated(self):
        assert add_business_days(datetime(2024, 1, 5, 23, 59), 1) == date(2024, 1, 8)

    def test_negative_days_rejected(self):
        with pytest.raises(ValueError):
            add_business_days(date(2024, 1, 5), -1)

    def test_holidays_are_not_skipped(self):
        # Holidays are only flagged, never skipped when planning
        assert add_business_days(date(2024, 12, 24), 1) == date(2024, 12, 25)

    def test_flags(self):
        assert is_weekend(date(2024, 3, 16))
        assert not is_weekend(date(2024, 3, 15))
        assert is_fixed_holiday(date(2024, 7, 20))
        assert not is_fixed_holiday(date(2024, 7, 21))


class TestDispatchDateResolver:
    def setup_method(self):
        self.resolver = DispatchDateResolver(planning_business_days=10)

    def test_earliest_confirmed_wins_and_carries_rate(self):
        events = [
            _event(1, DispatchType.TENTATIVE, date(2024, 3, 1)),
            _event(2, DispatchType.CONFIRMED, date(2024, 3, 12), rate="4100"),
            _event(3, DispatchType.CONFIRMED, date(2024, 3, 8), rate="4050"),
        ]
        planned = self.resolver.resolve(events, datetime(2024, 2, 20, 9, 0))
        assert planned.date == date(2024, 3, 8)
        assert planned.source == DateSource.CONFIRMED
        assert planned.rate == "4050"
        assert planned.event.id == 3

    def test_tentative_used_without_confirmed(self):
        events = [
            _event(1, DispatchType.TENTATIVE, date(2024, 3, 20), rate="4100"),
            _event(2, DispatchType.TENTATIVE, date(2024, 3, 18)),
        ]
        planned = self.resolver.resolve(events, datetime(2024, 3, 1))
        assert planned.date == date(2024, 3, 18)
        assert planned.source == DateSource.TENTATIVE
        assert planned.rate is None

    def test_events_without_date_are_ignored(self):
        events = [_event(1, DispatchType.CONFIRMED, None)]
        planned = self.resolver.resolve(events, datetime(2024, 3, 1, 15, 0))
        assert planned.source == DateSource.COMPUTED
        assert planned.date == date(2024, 3, 15)

    def test_computed_from_creation(self):
        planned = self.resolver.resolve([], date(2024, 3, 1))
        assert planned == planned.__class__(date=date(2024, 3, 15), source=DateSource.COMPUTED)

    def test_rate_window_adds_buffer(self):
        resolver = DispatchDateResolver(rate_window_buffer_days=15)
        assert resolver.rate_window(date(2024, 3, 1), date(2024, 3, 1)) == (date(2024, 3, 1), date(2024, 3, 22))
