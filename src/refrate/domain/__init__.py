# src/refrate/domain/__init__.py
"""
Domain Layer - Pure Business Objects

This package contains domain models and business rules.
No dependencies on infrastructure or external systems.
"""

from refrate.domain.models import (
    DEFAULT_RATE,
    MAX_VALID_RATE,
    MIN_VALID_RATE,
    DailyStatisticsSnapshot,
    DateSource,
    DispatchEvent,
    DispatchType,
    EffectiveRate,
    Order,
    OrderLine,
    OrderStatus,
    PlannedDispatch,
    RateQuote,
    RateSource,
    RateTier,
    SourceResult,
)
from refrate.domain.errors import (
    AggregationError,
    DomainError,
    InvalidRateError,
    RateSourceError,
)

__all__ = [
    "DEFAULT_RATE",
    "MAX_VALID_RATE",
    "MIN_VALID_RATE",
    "DailyStatisticsSnapshot",
    "DateSource",
    "DispatchEvent",
    "DispatchType",
    "EffectiveRate",
    "Order",
    "OrderLine",
    "OrderStatus",
    "PlannedDispatch",
    "RateQuote",
    "RateSource",
    "RateTier",
    "SourceResult",
    "AggregationError",
    "DomainError",
    "InvalidRateError",
    "RateSourceError",
]
