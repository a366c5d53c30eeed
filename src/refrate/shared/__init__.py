"""
Shared Utilities - Cross-cutting Concerns

This package contains shared utilities used across all layers:
- Validation
- Clock injection
- Logging configuration
"""

from refrate.shared.clock import Clock, fixed_clock, local_clock
from refrate.shared.validators import (
    parse_iso_date,
    validate_api_key,
    validate_currency_code,
    validate_timezone,
)

__all__ = [
    "Clock",
    "fixed_clock",
    "local_clock",
    "parse_iso_date",
    "validate_api_key",
    "validate_currency_code",
    "validate_timezone",
]
