# src/refrate/application/statistics.py
"""
Daily Statistics - Aggregation of Order and Dispatch Activity

For one calendar day this module computes seven metric groups and merges
them into a single DailyStatisticsSnapshot:

1. order creation     - orders created that day, by status and composition
2. actual dispatch    - confirmed events dated that day, units and value
3. planned dispatch   - order lines whose planned date falls on that day
4. pending            - planned minus actual (never negative), fulfillment %
5. completion         - every order created up to that day vs. what shipped
6. financial          - rate usage of the day's confirmed events
7. client activity    - distinct clients ordering, receiving, planned

There is no partial result: a failure in any group raises AggregationError
and nothing is stored. StatisticsService stores a snapshot only after it has
been computed completely, replacing the previous row in one transaction.

Files that USE this module:
- refrate.app (CLI stats command)
- tests.test_statistics (unit and end-to-end tests)

Files that this module USES:
- refrate.adapters.persistence.repositories (OrderRepository, StatisticsRepository)
- refrate.application.dispatch_dates (DispatchDateResolver)
- refrate.application.effective_rate (EffectiveRateResolver)
- refrate.domain.models (Order, DispatchEvent, DailyStatisticsSnapshot, ...)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from refrate.adapters.persistence.repositories import OrderRepository, StatisticsRepository
from refrate.application.dispatch_dates import DispatchDateResolver
from refrate.application.effective_rate import EffectiveRateResolver
from refrate.domain.errors import AggregationError
from refrate.domain.models import (
    ZERO,
    DailyStatisticsSnapshot,
    DateSource,
    DispatchEvent,
    EffectiveRate,
    Order,
    OrderLine,
    OrderStatus,
    PlannedDispatch,
)
from refrate.shared.clock import Clock

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def _percentage(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return ZERO
    return _money(Decimal(part) / Decimal(whole) * 100)


@dataclass(frozen=True)
class PricedEvent:
    """A confirmed dispatch event with its line and the rate applied to it."""
    order: Order
    event: DispatchEvent
    line: Optional[OrderLine]
    rate: EffectiveRate

    @property
    def is_sample(self) -> bool:
        return self.line is not None and self.line.is_sample

    @property
    def value_usd(self) -> Decimal:
        if self.line is None:
            return ZERO
        return self.line.unit_price * self.event.quantity

    @property
    def value_cop(self) -> Decimal:
        return self.value_usd * self.rate.value


@dataclass(frozen=True)
class PlannedLine:
    """An order line planned for the day, with the rate applied to it."""
    order: Order
    line: OrderLine
    planned: PlannedDispatch
    rate: EffectiveRate

    @property
    def value_usd(self) -> Decimal:
        return self.line.unit_price * self.line.quantity

    @property
    def value_cop(self) -> Decimal:
        return self.value_usd * self.rate.value


@dataclass
class DayContext:
    """Everything loaded once per day and shared by the metric groups."""
    day: date
    start: datetime
    end: datetime
    created: List[Order] = field(default_factory=list)
    dispatched: List[Order] = field(default_factory=list)
    all_orders: List[Order] = field(default_factory=list)
    actual: List[PricedEvent] = field(default_factory=list)
    planned: List[PlannedLine] = field(default_factory=list)
    day_rate: Decimal = ZERO


Group = Callable[[DayContext, DailyStatisticsSnapshot], Dict[str, Any]]


class StatisticsAggregator:
    """Computes one DailyStatisticsSnapshot; never writes anything."""

    def __init__(
        self,
        orders: OrderRepository,
        dates: DispatchDateResolver,
        rates: EffectiveRateResolver,
        clock: Clock,
    ):
        self.orders = orders
        self.dates = dates
        self.rates = rates
        self.clock = clock

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self, day: date) -> DayContext:
        ctx = DayContext(
            day=day,
            start=datetime.combine(day, time.min),
            end=datetime.combine(day, time.max),
        )
        self.rates.reset()
        self.rates.prime(*self.dates.rate_window(day, day))

        ctx.created = self.orders.orders_created_between(ctx.start, ctx.end)
        ctx.dispatched = self.orders.orders_with_confirmed_dispatch_between(day, day)
        ctx.all_orders = self.orders.orders_created_until(ctx.end)

        for order in ctx.dispatched:
            for event in order.events:
                if not event.is_confirmed or event.dispatch_date != day:
                    continue
                rate = self.rates.resolve(event.rate, event.dispatch_date, order.rate)
                ctx.actual.append(PricedEvent(order=order, event=event, line=order.line_for_event(event), rate=rate))

        for order in ctx.all_orders:
            for line in order.lines:
                planned = self.dates.resolve(order.events_for_line(line), order.created_at)
                if planned.date != day:
                    continue
                # Only the selected confirmed event's own rate may be used directly
                event_rate = planned.rate if planned.source == DateSource.CONFIRMED else None
                rate = self.rates.resolve(event_rate, planned.date, order.rate)
                ctx.planned.append(PlannedLine(order=order, line=line, planned=planned, rate=rate))

        ctx.day_rate = self._day_rate(ctx)
        return ctx

    def _day_rate(self, ctx: DayContext) -> Decimal:
        """Mean rate of the day's confirmed events, else the historical value, else the fallback tier."""
        if ctx.actual:
            return sum((p.rate.value for p in ctx.actual), ZERO) / len(ctx.actual)
        historical = self.rates.historical_rate(ctx.day)
        if historical is not None:
            return historical
        return self.rates.fallback(ctx.day).value

    # ------------------------------------------------------------------
    # Metric groups
    # ------------------------------------------------------------------

    @staticmethod
    def _order_creation(ctx: DayContext, snapshot: DailyStatisticsSnapshot) -> Dict[str, Any]:
        statuses = [o.status for o in ctx.created]
        commercial = sample = mixed = 0
        value_usd = ZERO
        for order in ctx.created:
            has_commercial = any(not line.is_sample for line in order.lines)
            has_sample = any(line.is_sample for line in order.lines)
            if has_commercial and has_sample:
                mixed += 1
            elif has_commercial:
                commercial += 1
            elif has_sample:
                sample += 1
            value_usd += sum((line.unit_price * line.quantity for line in order.lines), ZERO)

        return {
            "total_orders_created": len(ctx.created),
            "orders_pending": statuses.count(OrderStatus.PENDING.value),
            "orders_processing": statuses.count(OrderStatus.PROCESSING.value),
            "orders_partial": statuses.count(OrderStatus.PARTIAL.value),
            "orders_completed": statuses.count(OrderStatus.COMPLETED.value),
            "orders_new_win": sum(1 for o in ctx.created if o.is_new_win),
            "orders_commercial": commercial,
            "orders_sample": sample,
            "orders_mixed": mixed,
            "total_orders_value_usd": _money(value_usd),
            "total_orders_value_cop": _money(value_usd * ctx.day_rate),
        }

    @staticmethod
    def _actual_dispatch(ctx: DayContext, snapshot: DailyStatisticsSnapshot) -> Dict[str, Any]:
        commercial = [p for p in ctx.actual if not p.is_sample]
        samples = [p for p in ctx.actual if p.is_sample]
        return {
            "dispatched_orders_count": len({p.order.id for p in ctx.actual}),
            "dispatched_value_usd": _money(sum((p.value_usd for p in ctx.actual), ZERO)),
            "dispatched_value_cop": _money(sum((p.value_cop for p in ctx.actual), ZERO)),
            "commercial_products_dispatched": sum(p.event.quantity for p in commercial),
            "sample_products_dispatched": sum(p.event.quantity for p in samples),
            "commercial_dispatch_events": len(commercial),
            "sample_dispatch_events": len(samples),
        }

    @staticmethod
    def _planned_dispatch(ctx: DayContext, snapshot: DailyStatisticsSnapshot) -> Dict[str, Any]:
        sources = [p.planned.source for p in ctx.planned]
        return {
            "planned_orders_count": len({p.order.id for p in ctx.planned}),
            "planned_dispatch_value_usd": _money(sum((p.value_usd for p in ctx.planned), ZERO)),
            "planned_dispatch_value_cop": _money(sum((p.value_cop for p in ctx.planned), ZERO)),
            "planned_commercial_products": sum(p.line.quantity for p in ctx.planned if not p.line.is_sample),
            "planned_sample_products": sum(p.line.quantity for p in ctx.planned if p.line.is_sample),
            "planned_from_confirmed": sources.count(DateSource.CONFIRMED),
            "planned_from_tentative": sources.count(DateSource.TENTATIVE),
            "planned_from_computed": sources.count(DateSource.COMPUTED),
        }

    @staticmethod
    def _pending(ctx: DayContext, snapshot: DailyStatisticsSnapshot) -> Dict[str, Any]:
        s = snapshot
        planned_units = s.planned_commercial_products + s.planned_sample_products
        actual_units = s.commercial_products_dispatched + s.sample_products_dispatched
        return {
            "pending_dispatch_value_usd": max(ZERO, s.planned_dispatch_value_usd - s.dispatched_value_usd),
            "pending_dispatch_value_cop": max(ZERO, s.planned_dispatch_value_cop - s.dispatched_value_cop),
            "pending_commercial_products": max(0, s.planned_commercial_products - s.commercial_products_dispatched),
            "pending_sample_products": max(0, s.planned_sample_products - s.sample_products_dispatched),
            "dispatch_fulfillment_rate_usd": _percentage(s.dispatched_value_usd, s.planned_dispatch_value_usd),
            "dispatch_fulfillment_rate_products": _percentage(Decimal(actual_units), Decimal(planned_units)),
        }

    @staticmethod
    def _completion(ctx: DayContext, snapshot: DailyStatisticsSnapshot) -> Dict[str, Any]:
        fully = partially = none = 0
        pending_usd = ZERO
        days_to_first: List[int] = []

        for order in ctx.all_orders:
            shipped_events = [
                e for e in order.events
                if e.is_confirmed and e.dispatch_date is not None and e.dispatch_date <= ctx.day
            ]
            total_ordered = total_shipped = 0
            for line in order.lines:
                line_events = order.events_for_line(line)
                shipped = sum(e.quantity for e in shipped_events if e in line_events)
                total_ordered += line.quantity
                total_shipped += shipped
                if not line.is_sample and line.quantity > shipped:
                    pending_usd += (line.quantity - shipped) * line.unit_price

            if total_ordered > 0 and total_shipped >= total_ordered:
                fully += 1
            elif total_shipped > 0:
                partially += 1
            else:
                none += 1

            if shipped_events:
                first = min(e.dispatch_date for e in shipped_events)
                days_to_first.append(abs((first - order.created_at.date()).days))

        total = len(ctx.all_orders)
        average_days = _money(Decimal(sum(days_to_first)) / len(days_to_first)) if days_to_first else ZERO
        return {
            "orders_fully_dispatched": fully,
            "orders_partially_dispatched": partially,
            "orders_not_dispatched": none,
            "completion_pending_value_usd": _money(pending_usd),
            "completion_pending_value_cop": _money(pending_usd * ctx.day_rate),
            "avg_days_order_to_first_dispatch": average_days,
            "dispatch_completion_percentage": _percentage(Decimal(fully), Decimal(total)),
        }

    @staticmethod
    def _financial(ctx: DayContext, snapshot: DailyStatisticsSnapshot) -> Dict[str, Any]:
        custom = sum(1 for p in ctx.actual if p.rate.is_custom)
        return {
            "average_trm": _money(ctx.day_rate),
            "events_with_custom_rate": custom,
            "events_with_default_rate": len(ctx.actual) - custom,
        }

    @staticmethod
    def _clients(ctx: DayContext, snapshot: DailyStatisticsSnapshot) -> Dict[str, Any]:
        return {
            "unique_clients_with_orders": len({o.client_id for o in ctx.created}),
            "unique_clients_with_dispatches": len({p.order.client_id for p in ctx.actual}),
            "unique_clients_with_planned_dispatches": len({p.order.client_id for p in ctx.planned}),
        }

    def _groups(self) -> List[Tuple[str, Group]]:
        return [
            ("order_creation", self._order_creation),
            ("actual_dispatch", self._actual_dispatch),
            ("planned_dispatch", self._planned_dispatch),
            ("pending", self._pending),
            ("completion", self._completion),
            ("financial", self._financial),
            ("client_activity", self._clients),
        ]

    # ------------------------------------------------------------------

    def compute(self, day: date) -> DailyStatisticsSnapshot:
        """
        Compute the full snapshot for a day.

        Raises:
            AggregationError: If loading or any metric group fails
        """
        try:
            ctx = self._load(day)
        except Exception as e:
            logger.error("Loading data for %s failed: %s", day, e)
            raise AggregationError(day, "loading", e) from e

        snapshot = DailyStatisticsSnapshot(date=day)
        for name, group in self._groups():
            try:
                snapshot.update(group(ctx, snapshot))
            except Exception as e:
                logger.error("Statistics group %s failed for %s: %s", name, day, e)
                raise AggregationError(day, name, e) from e

        snapshot.computed_at = self.clock().replace(tzinfo=None)
        return snapshot


@dataclass(frozen=True)
class RecomputeOutcome:
    day: date
    snapshot: Optional[DailyStatisticsSnapshot] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class StatisticsService:
    """Computes snapshots and stores them, one day at a time."""

    def __init__(self, aggregator: StatisticsAggregator, repository: StatisticsRepository, clock: Clock):
        self.aggregator = aggregator
        self.repository = repository
        self.clock = clock

    def recompute(self, day: date) -> DailyStatisticsSnapshot:
        """
        Compute and store the snapshot for a day.

        The stored row is replaced only after the computation succeeded.

        Raises:
            AggregationError: If the computation fails (stored row untouched)
        """
        snapshot = self.aggregator.compute(day)
        self.repository.replace(snapshot)
        logger.info(
            "Statistics for %s stored: %d created, %d dispatched, %d planned",
            day, snapshot.total_orders_created, snapshot.dispatched_orders_count, snapshot.planned_orders_count,
        )
        return snapshot

    def recompute_range(self, start: date, end: date) -> Dict[date, RecomputeOutcome]:
        """
        Recompute every day from start to end; a failing day does not stop the run.

        Returns:
            Outcome per day, with the snapshot or the error message
        """
        if end < start:
            raise ValueError(f"end ({end}) is before start ({start})")

        outcomes: Dict[date, RecomputeOutcome] = {}
        current = start
        while current <= end:
            try:
                outcomes[current] = RecomputeOutcome(day=current, snapshot=self.recompute(current))
            except Exception as e:
                logger.error("Statistics for %s not stored: %s", current, e)
                outcomes[current] = RecomputeOutcome(day=current, error=str(e))
            current += timedelta(days=1)
        return outcomes

    def recompute_recent(self, days: Optional[int] = None) -> Dict[date, RecomputeOutcome]:
        """Recompute month-to-date, or the last N days including today."""
        today = self.clock().date()
        if days is None:
            start = today.replace(day=1)
        else:
            if days < 1:
                raise ValueError("days must be at least 1")
            start = today - timedelta(days=days - 1)
        return self.recompute_range(start, today)
