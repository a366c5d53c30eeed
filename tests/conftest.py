# tests/conftest.py
"""
Shared Test Fixtures

Provides a pinned local clock, temporary cache files, an in-memory SQLite
database and small helpers to seed orders, lines and dispatch events.

Files that USE this module:
- pytest (fixtures are injected into every test module)

Files that this module USES:
- refrate.adapters.persistence (Database, tables, JsonCacheStore)
- refrate.application.rate_cache (RateCache)
- refrate.shared.clock (fixed_clock)
"""
from datetime import date, datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest  # Testing framework for writing and running tests
from sqlalchemy import insert

from refrate.adapters.persistence.db import Database
from refrate.adapters.persistence.file_store import JsonCacheStore
from refrate.adapters.persistence.tables import (
    clients,
    partials,
    products,
    purchase_order_product,
    purchase_orders,
    trm_daily,
)
from refrate.application.rate_cache import RateCache
from refrate.shared.clock import fixed_clock

BOGOTA = ZoneInfo("America/Bogota")
NOW = datetime(2024, 3, 15, 10, 30, tzinfo=BOGOTA)  # Friday


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return fixed_clock(NOW)


@pytest.fixture
def cache_store(tmp_path):
    return JsonCacheStore(tmp_path / "rate_cache.json")


@pytest.fixture
def rate_cache(cache_store, tmp_path, clock):
    return RateCache(store=cache_store, last_known_good_path=tmp_path / "last_known_good.json", clock=clock)


@pytest.fixture
def db():
    database = Database("sqlite:///:memory:")
    database.create_all()
    yield database
    database.dispose()


class Seeder:
    """Inserts rows with auto-assigned ids."""

    def __init__(self, db):
        self.db = db
        self._ids = {}

    def _next(self, name):
        self._ids[name] = self._ids.get(name, 0) + 1
        return self._ids[name]

    def _insert(self, table, **values):
        with self.db.session_scope() as session:
            session.execute(insert(table).values(**values))
        return values["id"]

    def client(self, name="ACME"):
        return self._insert(clients, id=self._next("client"), name=name)

    def product(self, price="10.00", name="Widget"):
        return self._insert(products, id=self._next("product"), name=name, price=Decimal(price))

    def order(self, client_id, created_at, status="pending", is_new_win=False, trm=None):
        return self._insert(
            purchase_orders,
            id=self._next("order"),
            client_id=client_id,
            status=status,
            is_new_win=is_new_win,
            trm=Decimal(trm) if trm is not None else None,
            created_at=created_at,
        )

    def line(self, order_id, product_id, quantity, is_sample=False, price=None, delivery_date=None):
        return self._insert(
            purchase_order_product,
            id=self._next("line"),
            purchase_order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            price=Decimal(price) if price is not None else None,
            is_sample=is_sample,
            delivery_date=delivery_date,
        )

    def event(self, order_id, product_id, quantity, type="confirmed", dispatch_date=None,
              trm=None, line_id=None, deleted_at=None):
        return self._insert(
            partials,
            id=self._next("event"),
            order_id=order_id,
            product_id=product_id,
            product_order_id=line_id,
            quantity=quantity,
            type=type,
            dispatch_date=dispatch_date,
            trm=trm,
            deleted_at=deleted_at,
        )

    def rate(self, day: date, value, source="primary"):
        with self.db.session_scope() as session:
            session.execute(
                insert(trm_daily).values(
                    date=day, value=Decimal(value), source=source,
                    is_weekend=day.weekday() >= 5, is_holiday=False, fetched_at=None,
                )
            )


@pytest.fixture
def seed(db):
    return Seeder(db)
