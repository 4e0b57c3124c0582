"""Tests for DD/MM/YYYY parsing and the day count."""

from datetime import date

import pytest

from finsync.engine.dates import DateParser, format_date, normalize_date


@pytest.fixture
def parser() -> DateParser:
    return DateParser(cache_size=8)


class TestParse:
    """Tests for DateParser.parse."""

    @pytest.mark.parametrize("raw", ["01/04/2025", "29/02/2024", "31/12/1999", "15/08/2047"])
    def test_format_inverts_parse(self, parser, raw):
        """Test that formatting a parsed date gives the input back."""
        assert format_date(parser.parse(raw)) == raw

    def test_single_digit_parts(self, parser):
        """Test that day and month may be a single digit."""
        assert parser.parse("1/4/2025") == date(2025, 4, 1)

    def test_surrounding_whitespace(self, parser):
        """Test that surrounding blanks are ignored."""
        assert parser.parse("  01/04/2025 ") == date(2025, 4, 1)

    @pytest.mark.parametrize("raw", ["31/02/2025", "32/01/2025", "29/02/2025", "00/01/2025", "01/13/2025"])
    def test_impossible_dates_rejected(self, parser, raw):
        """Test that dates are never clamped into the next month."""
        assert parser.parse(raw) is None

    @pytest.mark.parametrize("raw", ["not-a-date", "2025/04/01", "01-04-2025", "01/04/25", "01/04/2025x"])
    def test_malformed_rejected(self, parser, raw):
        """Test that other layouts are refused."""
        assert parser.parse(raw) is None

    @pytest.mark.parametrize("raw", ["", "   "])
    def test_empty_is_none(self, parser, raw):
        """Test that blank text is no date."""
        assert parser.parse(raw) is None

    @pytest.mark.parametrize("raw", [None, 20250401, date(2025, 4, 1)])
    def test_non_string_is_none(self, parser, raw):
        """Test that only text is parsed."""
        assert parser.parse(raw) is None

    def test_iso_prefix(self, parser):
        """Test that ISO timestamps from the backend are understood."""
        assert parser.parse("2025-04-01T00:00:00.000Z") == date(2025, 4, 1)
        assert parser.parse("2025-02-30") is None


class TestValidity:
    def test_empty_counts_as_valid(self, parser):
        """Test that an empty date is acceptable."""
        assert parser.is_valid("")
        assert parser.is_valid(None)

    def test_invalid(self, parser):
        """Test that impossible dates and non-text are invalid."""
        assert not parser.is_valid("31/02/2025")
        assert not parser.is_valid(42)


class TestDaysInvolved:
    """Tests for the inclusive day count."""

    def test_same_day_counts_one(self, parser):
        """Test that a one-day project counts one day."""
        assert parser.days_involved("01/04/2025", "01/04/2025") == 1

    def test_inclusive_range(self, parser):
        """Test that both end dates are counted."""
        assert parser.days_involved("01/04/2025", "10/04/2025") == 10

    def test_end_before_start(self, parser):
        """Test that an end before the start counts zero days."""
        assert parser.days_involved("10/04/2025", "01/04/2025") == 0

    def test_missing_or_invalid_dates(self, parser):
        """Test that a missing or invalid date counts zero days."""
        assert parser.days_involved("", "10/04/2025") == 0
        assert parser.days_involved("01/04/2025", None) == 0
        assert parser.days_involved("31/02/2025", "10/04/2025") == 0

    def test_across_leap_day(self, parser):
        """Test that 29 February is counted."""
        assert parser.days_involved("28/02/2024", "01/03/2024") == 3


class TestCache:
    def test_repeated_strings_hit_the_cache(self, parser):
        """Test that parsing the same text twice hits the cache."""
        parser.parse("01/04/2025")
        parser.parse("01/04/2025")
        info = parser.cache_info()
        assert info.hits == 1
        assert info.misses == 1

    def test_cache_is_bounded(self, parser):
        """Test that the parse cache keeps at most its capacity."""
        for day in range(1, 29):
            parser.parse(f"{day:02d}/01/2025")
        assert parser.cache_info().currsize == 8

    def test_clear(self, parser):
        """Test that clearing empties the parse cache."""
        parser.parse("01/04/2025")
        parser.clear()
        assert parser.cache_info().currsize == 0


class TestNormalize:
    def test_normalizes_to_zero_padded(self):
        """Test that dates are zero padded."""
        assert normalize_date("1/4/2025") == "01/04/2025"

    def test_empty(self):
        """Test that no date normalizes to blank."""
        assert normalize_date(None) == ""

    def test_unparseable_left_alone(self):
        """Test that unreadable text is returned unchanged."""
        assert normalize_date("someday") == "someday"
