# src/refrate/application/dispatch_dates.py
"""
Dispatch Date Resolver - Planned Dispatch Date of an Order Line

Priority:
1. earliest confirmed event with a dispatch date (its rate travels along)
2. earliest tentative event with a dispatch date
3. order creation date + N business days (weekends skipped)

Files that USE this module:
- refrate.application.statistics (planned dispatch group)
- tests.test_dispatch_dates (unit tests)

Files that this module USES:
- refrate.domain.calendar (add_business_days)
- refrate.domain.models (DispatchEvent, PlannedDispatch, DateSource)
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Tuple, Union

from refrate.domain.calendar import add_business_days
from refrate.domain.models import DateSource, DispatchEvent, DispatchType, PlannedDispatch


class DispatchDateResolver:
    def __init__(self, planning_business_days: int = 10, rate_window_buffer_days: int = 15):
        self.planning_business_days = planning_business_days
        self.rate_window_buffer_days = rate_window_buffer_days

    @staticmethod
    def _earliest(events: Iterable[DispatchEvent], kind: DispatchType):
        dated = [e for e in events if e.type == kind and e.dispatch_date is not None]
        if not dated:
            return None
        return min(dated, key=lambda e: (e.dispatch_date, e.id))

    def resolve(self, events: Iterable[DispatchEvent], order_created: Union[date, datetime]) -> PlannedDispatch:
        """
        Planned dispatch date for one order line.

        Args:
            events: Dispatch events recorded against the line
            order_created: Creation date (or datetime) of the owning order

        Returns:
            PlannedDispatch with the date, the rule that produced it and, for a
            confirmed event, that event's raw rate
        """
        events = list(events)

        confirmed = self._earliest(events, DispatchType.CONFIRMED)
        if confirmed is not None:
            return PlannedDispatch(
                date=confirmed.dispatch_date,
                source=DateSource.CONFIRMED,
                rate=confirmed.rate,
                event=confirmed,
            )

        tentative = self._earliest(events, DispatchType.TENTATIVE)
        if tentative is not None:
            return PlannedDispatch(date=tentative.dispatch_date, source=DateSource.TENTATIVE, event=tentative)

        return PlannedDispatch(
            date=add_business_days(order_created, self.planning_business_days),
            source=DateSource.COMPUTED,
        )

    def rate_window(self, start: date, end: date) -> Tuple[date, date]:
        """Date range to preload historical rates for when planning [start, end]."""
        return start, add_business_days(end, self.rate_window_buffer_days)
