"""
Rate Normalizer - Parsing and Validation of Rate Values

Rates reach the system typed by hand on dispatch records, stored as text
columns, or returned by remote services. This module turns any of those
representations into a canonical Decimal and classifies the result.

Parsing never raises: anything that cannot be read as a rate becomes 0.

Files that USE this module:
- refrate.application.rate_cache (validity of cached values)
- refrate.application.rate_resolver (validity of source values)
- refrate.application.effective_rate (event and order rates)
- refrate.adapters.sources.* (numeric fields in source responses)
- tests.test_normalizer (unit tests)

Files that this module USES:
- refrate.domain.models (MIN_VALID_RATE / MAX_VALID_RATE bounds)
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional

from refrate.domain.models import MAX_VALID_RATE, MIN_VALID_RATE, ZERO

log = logging.getLogger(__name__)

_ONE = Decimal("1")
_STRIP_RE = re.compile(r"COP|USD|[$€£¥\s]", re.IGNORECASE)
_NUMERIC_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_NON_DIGIT_RE = re.compile(r"\D")
_INTEGER_DIGITS = 4


@dataclass(frozen=True)
class NormalizedRate:
    """Normalized value plus the default/valid classification callers branch on."""
    value: Decimal
    is_default: bool
    is_valid: bool


@dataclass(frozen=True)
class RateSummary:
    total_count: int
    valid_count: int
    invalid_count: int
    valid_percentage: Decimal
    average_valid: Decimal
    min_valid: Decimal
    max_valid: Decimal


@dataclass(frozen=True)
class Outlier:
    index: int
    value: Decimal
    difference_percentage: Decimal


@dataclass(frozen=True)
class ConsistencyReport:
    is_consistent: bool
    average: Decimal = ZERO
    tolerance: Decimal = ZERO
    outliers: List[Outlier] = field(default_factory=list)
    message: Optional[str] = None


def _to_decimal(text: str) -> Optional[Decimal]:
    """Strict numeric read; None when text is not a plain finite number."""
    if not _NUMERIC_RE.match(text):
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _unify_separators(text: str) -> str:
    """
    Resolve decimal vs. thousands separators.

    Both present: the last one is the decimal separator. Only a comma: it is
    the decimal separator. Only dots (or none): left unchanged.
    """
    has_dot = "." in text
    has_comma = "," in text
    if has_dot and has_comma:
        if text.rfind(",") > text.rfind("."):
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")
    if has_comma:
        return text.replace(",", ".")
    return text


def _parse_plain(text: str) -> Decimal:
    unified = _unify_separators(text)
    value = _to_decimal(unified)
    if value is not None:
        return value

    # Garbled input such as "3.669.15": keep the digits and rebuild
    digits = _NON_DIGIT_RE.sub("", unified)
    if not digits:
        return ZERO
    if len(digits) <= _INTEGER_DIGITS:
        return Decimal(digits)
    return Decimal(f"{digits[:_INTEGER_DIGITS]}.{digits[_INTEGER_DIGITS:]}")


def _parse_division(text: str) -> Decimal:
    parts = text.split("/")
    if len(parts) != 2:
        return ZERO
    numerator_text, denominator_text = parts
    if not _NON_DIGIT_RE.sub("", numerator_text):
        return ZERO

    numerator = _parse_plain(numerator_text)
    denominator = _parse_plain(denominator_text) if denominator_text else _ONE
    if denominator == 0:
        denominator = _ONE
    return numerator / denominator


def _parse_text(text: str) -> Decimal:
    cleaned = _STRIP_RE.sub("", text)
    if not cleaned:
        return ZERO
    if "/" in cleaned:
        return _parse_division(cleaned)
    return _parse_plain(cleaned)


def normalize(value: Any) -> Decimal:
    """
    Convert a rate in any supported representation to a Decimal.

    Accepts numbers and text such as "3.669,15", "3,669.15", "$ 3669,15 COP"
    or "12/4". No range filtering is applied here; see is_default() and
    is_valid_range().

    Args:
        value: Raw rate (str, int, float, Decimal or None)

    Returns:
        Non-negative finite Decimal, 0 when the value cannot be read
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        result = value if value.is_finite() else ZERO
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(repr(value)) if value == value and abs(value) != float("inf") else ZERO
    elif isinstance(value, str):
        try:
            result = _parse_text(value)
        except (InvalidOperation, ArithmeticError) as e:
            log.warning("Could not normalize rate %r: %s", value, e)
            return ZERO
    else:
        log.debug("Unsupported rate type %s, treating as 0", type(value).__name__)
        return ZERO

    if result < 0:
        return ZERO
    return result


def is_valid_range(value: Any) -> bool:
    """True when MIN_VALID_RATE <= value <= MAX_VALID_RATE."""
    normalized = value if isinstance(value, Decimal) and value.is_finite() else normalize(value)
    return MIN_VALID_RATE <= normalized <= MAX_VALID_RATE


def is_usable(value: Any) -> bool:
    """True when MIN_VALID_RATE < value <= MAX_VALID_RATE; the bar a resolved or cached rate must clear."""
    normalized = value if isinstance(value, Decimal) and value.is_finite() else normalize(value)
    return MIN_VALID_RATE < normalized <= MAX_VALID_RATE


def is_default(value: Any) -> bool:
    """True when the normalized value is 0 or below MIN_VALID_RATE."""
    normalized = normalize(value)
    return normalized == 0 or normalized < MIN_VALID_RATE


def normalize_with_flags(value: Any) -> NormalizedRate:
    normalized = normalize(value)
    default = normalized == 0 or normalized < MIN_VALID_RATE
    return NormalizedRate(value=normalized, is_default=default, is_valid=not default)


def summarize(values: Iterable[Any]) -> RateSummary:
    """
    Count and describe a batch of raw rates.

    Args:
        values: Raw rate values in any supported representation

    Returns:
        RateSummary with counts and mean/min/max of the values in range
    """
    normalized = [normalize(v) for v in values]
    valid = [v for v in normalized if is_valid_range(v)]
    total = len(normalized)

    percentage = (Decimal(len(valid)) / total * 100).quantize(Decimal("0.01")) if total else ZERO
    average = (sum(valid, ZERO) / len(valid)).quantize(Decimal("0.01")) if valid else ZERO

    return RateSummary(
        total_count=total,
        valid_count=len(valid),
        invalid_count=total - len(valid),
        valid_percentage=percentage,
        average_valid=average,
        min_valid=min(valid) if valid else ZERO,
        max_valid=max(valid) if valid else ZERO,
    )


def check_consistency(values: Iterable[Any], tolerance_pct: Decimal = Decimal("5")) -> ConsistencyReport:
    """
    Flag rates that differ from the batch mean by more than tolerance_pct percent.

    Only values in the valid range take part; indexes refer to the input order.
    """
    indexed = [(i, normalize(v)) for i, v in enumerate(values)]
    valid = [(i, v) for i, v in indexed if is_valid_range(v)]

    if len(valid) < 2:
        return ConsistencyReport(is_consistent=True, message="Insufficient data for consistency check")

    average = sum((v for _, v in valid), ZERO) / len(valid)
    tolerance = average * Decimal(tolerance_pct) / 100
    outliers = [
        Outlier(
            index=i,
            value=v,
            difference_percentage=(abs(v - average) / average * 100).quantize(Decimal("0.01")),
        )
        for i, v in valid
        if abs(v - average) > tolerance
    ]

    return ConsistencyReport(
        is_consistent=not outliers,
        average=average.quantize(Decimal("0.01")),
        tolerance=tolerance.quantize(Decimal("0.01")),
        outliers=outliers,
    )


def format_rate(value: Any, decimals: int = 2) -> str:
    """Format a rate for display, e.g. "3,669.15"; "N/A" when it normalizes to 0."""
    normalized = normalize(value)
    if normalized == 0:
        return "N/A"
    return f"{normalized:,.{decimals}f}"
