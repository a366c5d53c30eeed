# tests/test_statistics.py
"""
Statistics Tests - Daily Aggregation and Snapshot Storage

Includes an end-to-end run over an in-memory database: one mixed order,
one confirmed dispatch with a typed rate and a historical rate for the day.

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- refrate.application.statistics (StatisticsAggregator, StatisticsService)
- refrate.adapters.persistence.repositories (real repositories over SQLite)
- unittest.mock (Mock aggregator/repository for service tests)
"""
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import Mock, patch  # Mock objects and patching for failure paths

import pytest  # Testing framework for writing and running tests

from refrate.adapters.persistence.repositories import (
    HistoricalRateRepository,
    OrderRepository,
    StatisticsRepository,
)
from refrate.application.dispatch_dates import DispatchDateResolver
from refrate.application.effective_rate import EffectiveRateResolver
from refrate.application.statistics import StatisticsAggregator, StatisticsService
from refrate.domain.errors import AggregationError
from refrate.domain.models import DailyStatisticsSnapshot, DispatchEvent, DispatchType, Order, OrderLine

DAY = date(2024, 3, 14)


@pytest.fixture
def aggregator(db, clock):
    return StatisticsAggregator(
        orders=OrderRepository(db),
        dates=DispatchDateResolver(planning_business_days=10, rate_window_buffer_days=15),
        rates=EffectiveRateResolver(HistoricalRateRepository(db)),
        clock=clock,
    )


@pytest.fixture
def mixed_order(seed):
    """2 commercial units at $10 and 1 sample unit; 1 commercial unit shipped at a typed rate of 4000."""
    client = seed.client()
    commercial = seed.product(price="10.00")
    sample = seed.product(price="10.00", name="Sample")
    order = seed.order(client, datetime(2024, 3, 14, 9, 0), status="partial")
    line = seed.line(order, commercial, 2)
    seed.line(order, sample, 1, is_sample=True)
    seed.event(order, commercial, 1, dispatch_date=DAY, trm="4000", line_id=line)
    seed.rate(DAY, "4200")
    return order


class TestEndToEnd:
    def test_mixed_order_day(self, aggregator, mixed_order):
        s = aggregator.compute(DAY)

        assert s.total_orders_created == 1
        assert s.orders_partial == 1
        assert s.orders_mixed == 1
        assert s.total_orders_value_usd == Decimal("20.00")
        assert s.total_orders_value_cop == Decimal("80000.00")

        assert s.dispatched_orders_count == 1
        assert s.dispatched_value_usd == Decimal("10.00")
        assert s.dispatched_value_cop == Decimal("40000.00")
        assert s.commercial_products_dispatched == 1
        assert s.sample_products_dispatched == 0

        assert s.planned_orders_count == 1
        assert s.planned_dispatch_value_usd == Decimal("20.00")
        assert s.planned_commercial_products == 2
        assert s.planned_from_confirmed == 1

        assert s.pending_dispatch_value_usd == Decimal("10.00")
        assert s.pending_commercial_products == 1
        assert s.dispatch_fulfillment_rate_usd == Decimal("50.00")

        assert s.orders_partially_dispatched == 1
        assert s.completion_pending_value_usd == Decimal("10.00")
        assert s.avg_days_order_to_first_dispatch == Decimal("0.00")

        assert s.average_trm == Decimal("4000.00")
        assert s.events_with_custom_rate == 1
        assert s.events_with_default_rate == 0

        assert s.unique_clients_with_orders == 1
        assert s.unique_clients_with_dispatches == 1
        assert s.computed_at == datetime(2024, 3, 15, 10, 30)

    def test_service_stores_snapshot(self, db, aggregator, mixed_order, clock):
        service = StatisticsService(aggregator, StatisticsRepository(db), clock)

        service.recompute(DAY)
        service.recompute(DAY)

        stored = StatisticsRepository(db).get(DAY)
        assert stored.average_trm == Decimal("4000.00")
        assert stored.planned_dispatch_value_cop == Decimal("80000.00")


class TestAggregation:
    def test_quiet_day_uses_historical_rate(self, aggregator, seed):
        seed.rate(DAY, "4200")
        s = aggregator.compute(DAY)
        assert s.total_orders_created == 0
        assert s.average_trm == Decimal("4200.00")
        assert s.dispatch_fulfillment_rate_usd == Decimal("0")

    def test_quiet_day_without_history_uses_default(self, aggregator):
        assert aggregator.compute(DAY).average_trm == Decimal("4000.00")

    def test_computed_planned_date_and_order_rate(self, aggregator, seed):
        client = seed.client()
        product = seed.product(price="5.00")
        order = seed.order(client, datetime(2024, 2, 29, 16, 0), trm="3950")
        seed.line(order, product, 3, price="7.00")

        s = aggregator.compute(DAY)

        assert s.planned_from_computed == 1
        assert s.planned_dispatch_value_usd == Decimal("21.00")
        assert s.planned_dispatch_value_cop == Decimal("82950.00")
        assert s.orders_not_dispatched == 1
        assert s.completion_pending_value_usd == Decimal("21.00")

    def test_sample_dispatch_counts_units_not_value(self, aggregator, seed):
        client = seed.client()
        product = seed.product(price="10.00")
        order = seed.order(client, datetime(2024, 3, 10, 9, 0), status="completed")
        line = seed.line(order, product, 2, is_sample=True)
        seed.event(order, product, 2, dispatch_date=DAY, line_id=line)

        s = aggregator.compute(DAY)

        assert s.sample_products_dispatched == 2
        assert s.sample_dispatch_events == 1
        assert s.dispatched_value_usd == Decimal("0.00")
        assert s.events_with_default_rate == 1
        assert s.orders_fully_dispatched == 1
        assert s.dispatch_completion_percentage == Decimal("100.00")
        assert s.avg_days_order_to_first_dispatch == Decimal("4.00")

    def test_pending_floors_at_zero_when_shipping_more_than_planned(self, aggregator, seed):
        """The line was planned for Mar 12, so nothing is planned on DAY while one unit still ships."""
        client = seed.client()
        product = seed.product(price="10.00")
        order = seed.order(client, datetime(2024, 3, 1, 9, 0), status="completed")
        line = seed.line(order, product, 2)
        seed.event(order, product, 1, dispatch_date=date(2024, 3, 12), line_id=line)
        seed.event(order, product, 1, dispatch_date=DAY, line_id=line)
        seed.rate(DAY, "4200")

        s = aggregator.compute(DAY)

        assert s.planned_dispatch_value_usd == Decimal("0")
        assert s.dispatched_value_usd == Decimal("10.00")
        assert s.pending_dispatch_value_usd == 0
        assert s.pending_dispatch_value_cop == 0
        assert s.pending_commercial_products == 0
        assert s.orders_fully_dispatched == 1
        assert s.completion_pending_value_usd == Decimal("0")

    def test_loading_failure(self, clock):
        orders = Mock()
        orders.orders_created_between.side_effect = RuntimeError("db down")
        rates = Mock()
        aggregator = StatisticsAggregator(orders, DispatchDateResolver(), rates, clock)

        with pytest.raises(AggregationError) as excinfo:
            aggregator.compute(DAY)
        assert excinfo.value.group == "loading"
        assert excinfo.value.day == DAY

    def test_group_failure_names_group(self, aggregator):
        with patch.object(StatisticsAggregator, "_pending", Mock(side_effect=ZeroDivisionError("bad"))):
            with pytest.raises(AggregationError, match="pending"):
                aggregator.compute(DAY)


class TestOrderModel:
    def test_legacy_event_matches_on_product(self):
        line = OrderLine(id=7, order_id=1, product_id=3, quantity=2)
        legacy = DispatchEvent(id=1, order_id=1, product_id=3, quantity=1, type=DispatchType.CONFIRMED)
        other = DispatchEvent(id=2, order_id=1, product_id=3, quantity=1, type=DispatchType.CONFIRMED, line_id=8)
        order = Order(id=1, client_id=1, status="pending", created_at=datetime(2024, 3, 1),
                      lines=[line], events=[legacy, other])

        assert order.events_for_line(line) == [legacy]
        assert order.line_for_event(legacy) == line
        assert order.line_for_event(other) is None

    def test_unit_price(self):
        assert OrderLine(1, 1, 1, 1, list_price=Decimal("10"), price_override=Decimal("8")).unit_price == Decimal("8")
        assert OrderLine(1, 1, 1, 1, list_price=Decimal("10"), price_override=Decimal("0")).unit_price == Decimal("10")
        assert OrderLine(1, 1, 1, 1, list_price=Decimal("10"), is_sample=True).unit_price == Decimal("0")

    def test_snapshot_rejects_unknown_field(self):
        with pytest.raises(KeyError):
            DailyStatisticsSnapshot(date=DAY).update({"nope": 1})


class TestStatisticsService:
    def _service(self, clock, fail_on=None):
        aggregator = Mock()

        def compute(day):
            if day == fail_on:
                raise AggregationError(day, "completion", RuntimeError("boom"))
            return DailyStatisticsSnapshot(date=day)

        aggregator.compute.side_effect = compute
        repository = Mock()
        return StatisticsService(aggregator, repository, clock), repository

    def test_failed_day_is_not_stored(self, clock):
        service, repository = self._service(clock, fail_on=DAY)
        with pytest.raises(AggregationError):
            service.recompute(DAY)
        repository.replace.assert_not_called()

    def test_range_continues_past_failures(self, clock):
        service, repository = self._service(clock, fail_on=date(2024, 3, 12))

        outcomes = service.recompute_range(date(2024, 3, 11), date(2024, 3, 13))

        assert [o.ok for o in outcomes.values()] == [True, False, True]
        assert "completion" in outcomes[date(2024, 3, 12)].error
        assert repository.replace.call_count == 2

    def test_range_rejects_reversed_bounds(self, clock):
        service, _ = self._service(clock)
        with pytest.raises(ValueError):
            service.recompute_range(date(2024, 3, 13), date(2024, 3, 11))

    def test_recent_defaults_to_month_to_date(self, clock):
        service, _ = self._service(clock)
        outcomes = service.recompute_recent()
        assert min(outcomes) == date(2024, 3, 1)
        assert max(outcomes) == date(2024, 3, 15)

    def test_recent_days(self, clock):
        service, _ = self._service(clock)
        assert list(service.recompute_recent(3)) == [date(2024, 3, 13), date(2024, 3, 14), date(2024, 3, 15)]
