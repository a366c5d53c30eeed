# src/refrate/adapters/persistence/repositories.py
"""
Repositories - Read/Write Contracts over the Relational Store

- OrderRepository: loads order aggregates (lines + live dispatch events)
- HistoricalRateRepository: the one-row-per-date historical rate table
- StatisticsRepository: one statistics row per date, replaced atomically

Files that USE this module:
- refrate.application.statistics (orders, historical rates, snapshots)
- refrate.application.effective_rate (historical rate lookup)
- refrate.application.daily_rates (historical rate writes)
- refrate.app (composition root)
- tests.test_repositories (unit tests)

Files that this module USES:
- refrate.adapters.persistence.db (Database sessions)
- refrate.adapters.persistence.tables (table definitions)
- refrate.domain.models (Order, OrderLine, DispatchEvent, DailyStatisticsSnapshot)
"""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, insert, select, update

from refrate.adapters.persistence.db import Database
from refrate.adapters.persistence.tables import (
    order_statistics,
    partials,
    products,
    purchase_order_product,
    purchase_orders,
    trm_daily,
)
from refrate.domain.models import (
    DailyStatisticsSnapshot,
    DispatchEvent,
    DispatchType,
    Order,
    OrderLine,
    RateSource,
)

log = logging.getLogger(__name__)


def _decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))


class OrderRepository:
    """Loads purchase orders with their lines and non-deleted dispatch events."""

    def __init__(self, db: Database):
        self.db = db

    def _load(self, order_filter) -> List[Order]:
        with self.db.session_scope() as session:
            order_rows = session.execute(
                select(purchase_orders).where(order_filter).order_by(purchase_orders.c.id)
            ).mappings().all()
            if not order_rows:
                return []
            order_ids = [row["id"] for row in order_rows]

            line_rows = session.execute(
                select(
                    purchase_order_product,
                    products.c.price.label("list_price"),
                )
                .join(products, products.c.id == purchase_order_product.c.product_id)
                .where(purchase_order_product.c.purchase_order_id.in_(order_ids))
                .order_by(purchase_order_product.c.id)
            ).mappings().all()

            event_rows = session.execute(
                select(partials)
                .where(partials.c.order_id.in_(order_ids))
                .where(partials.c.deleted_at.is_(None))
                .order_by(partials.c.id)
            ).mappings().all()

        lines_by_order: Dict[int, List[OrderLine]] = defaultdict(list)
        for row in line_rows:
            lines_by_order[row["purchase_order_id"]].append(
                OrderLine(
                    id=row["id"],
                    order_id=row["purchase_order_id"],
                    product_id=row["product_id"],
                    quantity=int(row["quantity"] or 0),
                    list_price=_decimal(row["list_price"]) or Decimal("0"),
                    price_override=_decimal(row["price"]),
                    is_sample=bool(row["is_sample"]),
                    requested_delivery_date=row["delivery_date"],
                )
            )

        events_by_order: Dict[int, List[DispatchEvent]] = defaultdict(list)
        for row in event_rows:
            try:
                event_type = DispatchType(row["type"])
            except ValueError:
                log.warning("Skipping dispatch event %s with unknown type %r", row["id"], row["type"])
                continue
            events_by_order[row["order_id"]].append(
                DispatchEvent(
                    id=row["id"],
                    order_id=row["order_id"],
                    product_id=row["product_id"],
                    line_id=row["product_order_id"],
                    quantity=int(row["quantity"] or 0),
                    type=event_type,
                    dispatch_date=row["dispatch_date"],
                    rate=row["trm"],
                )
            )

        return [
            Order(
                id=row["id"],
                client_id=row["client_id"],
                status=row["status"],
                created_at=row["created_at"],
                is_new_win=bool(row["is_new_win"]),
                rate=_decimal(row["trm"]),
                lines=lines_by_order.get(row["id"], []),
                events=events_by_order.get(row["id"], []),
            )
            for row in order_rows
        ]

    def orders_created_between(self, start: datetime, end: datetime) -> List[Order]:
        return self._load(purchase_orders.c.created_at.between(start, end))

    def orders_created_until(self, end: datetime) -> List[Order]:
        return self._load(purchase_orders.c.created_at <= end)

    def orders_with_confirmed_dispatch_between(self, start: date, end: date) -> List[Order]:
        """Orders having at least one live confirmed event dated within [start, end]."""
        dispatched = (
            select(partials.c.order_id)
            .where(partials.c.type == DispatchType.CONFIRMED.value)
            .where(partials.c.deleted_at.is_(None))
            .where(partials.c.dispatch_date.between(start, end))
        )
        return self._load(purchase_orders.c.id.in_(dispatched))


class HistoricalRateRepository:
    """Access to the trm_daily table (one authoritative rate per date)."""

    def __init__(self, db: Database):
        self.db = db

    def get(self, day: date) -> Optional[Decimal]:
        with self.db.session_scope() as session:
            value = session.execute(
                select(trm_daily.c.value).where(trm_daily.c.date == day)
            ).scalar_one_or_none()
        return _decimal(value)

    def window(self, start: date, end: date) -> Dict[date, Decimal]:
        """All stored rates between start and end, inclusive."""
        with self.db.session_scope() as session:
            rows = session.execute(
                select(trm_daily.c.date, trm_daily.c.value).where(trm_daily.c.date.between(start, end))
            ).all()
        return {row.date: _decimal(row.value) for row in rows}

    def exists(self, day: date) -> bool:
        with self.db.session_scope() as session:
            found = session.execute(
                select(trm_daily.c.date).where(trm_daily.c.date == day)
            ).first()
        return found is not None

    def upsert(
        self,
        day: date,
        value: Decimal,
        source: RateSource,
        is_weekend: bool,
        is_holiday: bool,
        fetched_at: datetime,
    ) -> None:
        values = {
            "value": value,
            "source": source.value,
            "is_weekend": is_weekend,
            "is_holiday": is_holiday,
            "fetched_at": fetched_at,
        }
        with self.db.session_scope() as session:
            result = session.execute(update(trm_daily).where(trm_daily.c.date == day).values(**values))
            if result.rowcount == 0:
                session.execute(insert(trm_daily).values(date=day, **values))

    def missing_dispatch_dates(self, start: date, end: date) -> List[date]:
        """Confirmed-event dispatch dates in [start, end] with no stored rate."""
        stored = select(trm_daily.c.date)
        with self.db.session_scope() as session:
            rows = session.execute(
                select(partials.c.dispatch_date)
                .distinct()
                .where(partials.c.type == DispatchType.CONFIRMED.value)
                .where(partials.c.deleted_at.is_(None))
                .where(partials.c.dispatch_date.between(start, end))
                .where(partials.c.dispatch_date.not_in(stored))
                .order_by(partials.c.dispatch_date)
            ).scalars().all()
        return list(rows)


class StatisticsRepository:
    """order_statistics rows, one per date."""

    def __init__(self, db: Database):
        self.db = db

    def replace(self, snapshot: DailyStatisticsSnapshot) -> None:
        """Delete and re-insert the row for snapshot.date in a single transaction."""
        with self.db.session_scope() as session:
            session.execute(delete(order_statistics).where(order_statistics.c.date == snapshot.date))
            session.execute(insert(order_statistics).values(**snapshot.as_row()))
        log.debug("Stored statistics row for %s", snapshot.date)

    def get(self, day: date) -> Optional[DailyStatisticsSnapshot]:
        with self.db.session_scope() as session:
            row = session.execute(
                select(order_statistics).where(order_statistics.c.date == day)
            ).mappings().first()
        if row is None:
            return None
        return DailyStatisticsSnapshot.from_row(dict(row))

    def dates_between(self, start: date, end: date) -> Iterable[date]:
        with self.db.session_scope() as session:
            return list(
                session.execute(
                    select(order_statistics.c.date)
                    .where(order_statistics.c.date.between(start, end))
                    .order_by(order_statistics.c.date)
                ).scalars()
            )
