"""
Domain Errors - Business Logic Exceptions

This module defines domain-specific exceptions that represent
business rule violations and domain errors.
"""


class DomainError(Exception):
    """Base exception for domain errors."""
    pass


class InvalidRateError(DomainError):
    """Raised when a rate value is outside the plausible range."""
    pass


class RateSourceError(DomainError):
    """Raised by a rate source adapter on transport, timeout or response errors."""
    pass


class AggregationError(DomainError):
    """Raised when a day's statistics cannot be computed completely."""

    def __init__(self, day, group: str, cause: Exception):
        self.day = day
        self.group = group
        self.cause = cause
        super().__init__(f"Statistics for {day} failed in {group}: {cause}")
