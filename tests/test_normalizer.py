# tests/test_normalizer.py
"""
Rate Normalizer Tests - Parsing and Classification of Raw Rates

Covers the many ways a rate gets typed by hand ("3.669,15", "$ 3669 COP",
"12/4"), range classification and batch consistency checks.

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- refrate.domain.normalizer (functions under test)
"""
from decimal import Decimal

import pytest  # Testing framework for writing and running tests

from refrate.domain.normalizer import (
    check_consistency,
    format_rate,
    is_default,
    is_usable,
    is_valid_range,
    normalize,
    normalize_with_flags,
    summarize,
)


class TestNormalize:
    @pytest.mark.parametrize("raw, expected", [
        ("3669.15", Decimal("3669.15")),
        ("3.669,15", Decimal("3669.15")),
        ("3,669.15", Decimal("3669.15")),
        ("3669,15", Decimal("3669.15")),
        ("$ 3669,15 COP", Decimal("3669.15")),
        ("usd 4100", Decimal("4100")),
        ("  4000  ", Decimal("4000")),
    ])
    def test_separator_conventions(self, raw, expected):
        assert normalize(raw) == expected

    def test_garbled_dots_keep_four_integer_digits(self):
        assert normalize("3.669.15") == Decimal("3669.15")

    def test_short_garbled_input_is_integer(self):
        assert normalize("1.2.3") == Decimal("123")

    def test_division(self):
        assert normalize("12/4") == Decimal("3")
        assert normalize("8000/2") == Decimal("4000")

    def test_division_edge_cases(self):
        assert normalize("12/") == Decimal("12")
        assert normalize("12/0") == Decimal("12")
        assert normalize("/4") == Decimal("0")
        assert normalize("1/2/3") == Decimal("0")

    def test_numbers(self):
        assert normalize(4000) == Decimal("4000")
        assert normalize(3950.5) == Decimal("3950.5")
        assert normalize(Decimal("4012.25")) == Decimal("4012.25")

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc", "COP", True, float("nan"), float("inf"), [4000]])
    def test_unreadable_is_zero(self, raw):
        assert normalize(raw) == Decimal("0")

    @pytest.mark.parametrize("raw", ["12/7", "3.669,15", "1e3", "3.669.15", "$ 3669,15 COP", "8000/3", 3950.5])
    def test_normalizing_twice_changes_nothing(self, raw):
        once = normalize(raw)
        assert normalize(str(once)) == once
        assert normalize(once) == once

    def test_negative_is_zero(self):
        assert normalize("-4000") == Decimal("0")
        assert normalize(-1) == Decimal("0")


class TestClassification:
    def test_valid_range_is_inclusive(self):
        assert is_valid_range(Decimal("3800"))
        assert is_valid_range(Decimal("10000"))
        assert not is_valid_range(Decimal("3799.99"))
        assert not is_valid_range(Decimal("10000.01"))

    def test_usable_excludes_lower_bound(self):
        assert not is_usable(Decimal("3800"))
        assert is_usable(Decimal("3800.01"))
        assert is_usable("10000")

    def test_is_default(self):
        assert is_default(None)
        assert is_default("3000")
        assert not is_default("3800")

    def test_flags(self):
        flagged = normalize_with_flags("4.100,50")
        assert flagged.value == Decimal("4100.50")
        assert flagged.is_valid
        assert not flagged.is_default

        missing = normalize_with_flags(None)
        assert missing.value == Decimal("0")
        assert missing.is_default
        assert not missing.is_valid


class TestBatchHelpers:
    def test_summarize(self):
        summary = summarize(["4000", "4200", "abc", "12000"])
        assert summary.total_count == 4
        assert summary.valid_count == 2
        assert summary.invalid_count == 2
        assert summary.valid_percentage == Decimal("50.00")
        assert summary.average_valid == Decimal("4100.00")
        assert summary.min_valid == Decimal("4000")
        assert summary.max_valid == Decimal("4200")

    def test_summarize_empty(self):
        summary = summarize([])
        assert summary.total_count == 0
        assert summary.valid_percentage == Decimal("0")

    def test_consistency_flags_outlier(self):
        report = check_consistency(["4000", "4010", "4005", "4000", "4002", "5000"])
        assert not report.is_consistent
        assert [o.index for o in report.outliers] == [5]
        assert report.outliers[0].value == Decimal("5000")

    def test_consistency_within_tolerance(self):
        report = check_consistency(["4000", "4050"])
        assert report.is_consistent
        assert report.outliers == []

    def test_consistency_insufficient_data(self):
        report = check_consistency(["4000", "abc"])
        assert report.is_consistent
        assert report.message == "Insufficient data for consistency check"

    def test_format_rate(self):
        assert format_rate("3669.15") == "3,669.15"
        assert format_rate(4000, decimals=0) == "4,000"
        assert format_rate(None) == "N/A"
