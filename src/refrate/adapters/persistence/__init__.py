# src/refrate/adapters/persistence/__init__.py
"""
Persistence Adapters - Data Storage

This package contains adapters for persisting data:
- File-based storage (JSON rate cache, last-known-good record)
- Relational storage (orders, historical rates, statistics) via SQLAlchemy
"""

from refrate.adapters.persistence.file_store import (
    JsonCacheStore,
    LastKnownGoodRate,
    RateCacheEntry,
    clear_last_known_good,
    load_last_known_good,
    save_last_known_good,
)
from refrate.adapters.persistence.db import Database
from refrate.adapters.persistence.repositories import (
    HistoricalRateRepository,
    OrderRepository,
    StatisticsRepository,
)

__all__ = [
    "JsonCacheStore",
    "LastKnownGoodRate",
    "RateCacheEntry",
    "clear_last_known_good",
    "load_last_known_good",
    "save_last_known_good",
    "Database",
    "HistoricalRateRepository",
    "OrderRepository",
    "StatisticsRepository",
]
