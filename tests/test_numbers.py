"""Tests for rounding and numeric coercion."""

import math
import sys

import pytest

from finsync.engine.numbers import parse_number, round2, to_number


class TestRound2:
    """Round half away from zero to 2 places."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (1.005, 1.01),
            (2.675, 2.68),
            (-1.005, -1.01),
            (12.5, 12.5),
            (100 / 3, 33.33),
            (0.125, 0.13),
        ],
    )
    def test_half_away_from_zero(self, value, expected):
        """Test that ties round away from zero on the shortest decimal form."""
        assert round2(value) == expected

    def test_negative_zero_normalized(self):
        """Test that a value rounding to zero is positive zero."""
        result = round2(-0.001)
        assert result == 0.0
        assert math.copysign(1.0, result) == 1.0

    def test_non_finite_becomes_zero(self):
        """Test that infinity and NaN round to 0."""
        assert round2(float("inf")) == 0.0
        assert round2(float("nan")) == 0.0

    @pytest.mark.parametrize("value", [1e26, 1e30, -4.2e45, 1.5e300, sys.float_info.max])
    def test_huge_values_keep_their_magnitude(self, value):
        """Test that values beyond 28 significant digits round without raising."""
        assert round2(value) == value

    def test_huge_product_stays_finite(self):
        """Test that twelve times a large monthly figure is still a finite number."""
        result = round2(1e30 * 12)
        assert math.isfinite(result)
        assert result == 1e30 * 12


class TestParseNumber:
    def test_numbers_and_numeric_strings(self):
        """Test that numbers and numeric text parse to floats."""
        assert parse_number(5) == 5.0
        assert parse_number(" 12.5 ") == 12.5
        assert parse_number("0") == 0.0

    def test_empty_is_none(self):
        """Test that blank input means no value."""
        assert parse_number("") is None
        assert parse_number("  ") is None
        assert parse_number(None) is None

    @pytest.mark.parametrize("raw", ["abc", "1_000", "inf", "nan", [1]])
    def test_rejects_non_numbers(self, raw):
        """Test that non-numeric and non-finite input is refused."""
        with pytest.raises(ValueError):
            parse_number(raw)


class TestToNumber:
    def test_number_or_default(self):
        """Test that anything unreadable falls back to the default."""
        assert to_number("7") == 7.0
        assert to_number("abc") == 0.0
        assert to_number(None) == 0.0
        assert to_number("", default=1.0) == 1.0
