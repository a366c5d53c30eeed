# src/refrate/adapters/persistence/tables.py
"""
Tables - Relational Schema

SQLAlchemy Core table definitions for the records the rate resolver and the
statistics aggregator read and write.

Read-only from this package's point of view: clients, products,
purchase_orders, purchase_order_product, partials.
Written here: trm_daily, order_statistics.

Files that USE this module:
- refrate.adapters.persistence.db (metadata.create_all)
- refrate.adapters.persistence.repositories (queries)
- tests.* (fixture data)

Files that this module USES:
- refrate.domain.models (DailyStatisticsSnapshot field list)
"""
from __future__ import annotations

from dataclasses import fields

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
)

from refrate.domain.models import DailyStatisticsSnapshot

metadata = MetaData()

clients = Table(
    "clients",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False, default=""),
)

products = Table(
    "products",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False, default=""),
    Column("price", Numeric(14, 4), nullable=False, default=0),
)

purchase_orders = Table(
    "purchase_orders",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("client_id", Integer, ForeignKey("clients.id"), nullable=False, index=True),
    Column("status", String(32), nullable=False, default="pending"),
    Column("is_new_win", Boolean, nullable=False, default=False),
    Column("trm", Numeric(12, 2), nullable=True),
    Column("created_at", DateTime, nullable=False, index=True),
)

purchase_order_product = Table(
    "purchase_order_product",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("purchase_order_id", Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("quantity", Integer, nullable=False, default=0),
    Column("price", Numeric(14, 4), nullable=True),
    Column("is_sample", Boolean, nullable=False, default=False),
    Column("delivery_date", Date, nullable=True),
)

partials = Table(
    "partials",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("order_id", Integer, ForeignKey("purchase_orders.id"), nullable=False, index=True),
    Column("product_id", Integer, ForeignKey("products.id"), nullable=False),
    Column("product_order_id", Integer, ForeignKey("purchase_order_product.id"), nullable=True),
    Column("quantity", Integer, nullable=False, default=0),
    Column("type", String(16), nullable=False),  # confirmed | tentative
    Column("dispatch_date", Date, nullable=True, index=True),
    Column("trm", String(64), nullable=True),  # as typed by the user
    Column("deleted_at", DateTime, nullable=True),
)

trm_daily = Table(
    "trm_daily",
    metadata,
    Column("date", Date, primary_key=True),
    Column("value", Numeric(12, 2), nullable=False),
    Column("source", String(32), nullable=False),
    Column("is_weekend", Boolean, nullable=False, default=False),
    Column("is_holiday", Boolean, nullable=False, default=False),
    Column("fetched_at", DateTime, nullable=True),
)


def _statistics_columns():
    columns = []
    for f in fields(DailyStatisticsSnapshot):
        if f.name in ("date", "computed_at"):
            continue
        # int metrics default to 0, money/percentage metrics to Decimal("0")
        column_type = Integer if isinstance(f.default, int) else Numeric(18, 2)
        columns.append(Column(f.name, column_type, nullable=False, default=0))
    return columns


order_statistics = Table(
    "order_statistics",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("date", Date, nullable=False, unique=True),
    Column("computed_at", DateTime, nullable=True),
    *_statistics_columns(),
)
