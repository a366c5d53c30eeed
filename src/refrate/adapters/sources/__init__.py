# src/refrate/adapters/sources/__init__.py
"""
Source Adapters - Remote Reference-Rate Services

This package contains clients for the services the resolver falls back to.
All providers implement the RateProvider interface.
"""

from refrate.adapters.sources.base import RateProvider
from refrate.adapters.sources.openexchangerates import OpenExchangeRatesProvider
from refrate.adapters.sources.superfinanciera import SuperfinancieraProvider

__all__ = [
    "RateProvider",
    "OpenExchangeRatesProvider",
    "SuperfinancieraProvider",
]
