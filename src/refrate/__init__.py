"""
refrate - Reference Rate Resolver and Daily Dispatch Statistics

Resolves the daily USD→COP reference rate (TRM) through a cached cascade of
external sources and aggregates purchase-order dispatch activity into one
statistics snapshot per calendar day.
"""

__version__ = "1.0.0"
