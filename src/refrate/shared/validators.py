# src/refrate/shared/validators.py
"""
Input Validation Utilities - Configuration and CLI Input Validation

This module provides validation helpers for configuration values and command
line input: API keys, currency codes, timezone names and ISO dates.

Files that USE this module:
- refrate.config.settings (uses validation functions in Settings field validators)
- refrate.app (parses --date/--from/--to options)

Files that this module USES:
- None (pure utility functions)
"""
import re
from datetime import date
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def validate_api_key(api_key: str, min_length: int = 10) -> bool:
    """
    Validate API key format.

    Args:
        api_key: API key to validate
        min_length: Minimum length requirement

    Returns:
        True if valid, False otherwise
    """
    if not api_key:
        return False

    return len(api_key) >= min_length and not api_key.isspace() and " " not in api_key


def validate_currency_code(code: str) -> bool:
    """
    Validate an ISO 4217 currency code (three uppercase letters).

    Args:
        code: Currency code to validate

    Returns:
        True if valid, False otherwise
    """
    if not code:
        return False
    return bool(re.match(r"^[A-Z]{3}$", code))


def validate_timezone(name: str) -> bool:
    """
    Validate an IANA timezone name.

    Args:
        name: Timezone name such as "America/Bogota"

    Returns:
        True if the name resolves to a timezone, False otherwise
    """
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse a YYYY-MM-DD string.

    Args:
        value: Date string (None or empty returns None)

    Returns:
        Parsed date, or None when value is empty

    Raises:
        ValueError: If the string is not a valid ISO date
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", text):
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return date.fromisoformat(text)
