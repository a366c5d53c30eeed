# src/refrate/application/__init__.py
"""
Application Layer - Use Cases and Services

This package contains application services that orchestrate domain logic.
Adapters are injected through constructors.
"""

from refrate.application.rate_cache import RateCache
from refrate.application.rate_resolver import RateResolver
from refrate.application.dispatch_dates import DispatchDateResolver
from refrate.application.effective_rate import EffectiveRateResolver
from refrate.application.statistics import StatisticsAggregator, StatisticsService
from refrate.application.daily_rates import DailyRateFetcher

__all__ = [
    "RateCache",
    "RateResolver",
    "DispatchDateResolver",
    "EffectiveRateResolver",
    "StatisticsAggregator",
    "StatisticsService",
    "DailyRateFetcher",
]
