"""
Strict DD/MM/YYYY date parsing.

A date string is accepted only if the day, month and year it names
exist exactly: "31/02/2025" is rejected, never clamped to March.
A leading ISO date (YYYY-MM-DD...) is accepted as a secondary format
because the backend stores some dates that way.

Results are memoized per exact raw string in a bounded LRU cache.
"""

import re
from datetime import date
from functools import lru_cache
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)

DISPLAY_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
ISO_PREFIX_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")

DEFAULT_CACHE_SIZE = 4096


def _parse_uncached(raw: str) -> Optional[date]:
    text = raw.strip()
    if not text:
        return None

    iso = ISO_PREFIX_PATTERN.match(text)
    if iso:
        parsed = _build_date(*(int(part) for part in iso.groups()))
        if parsed is not None:
            return parsed

    match = DISPLAY_PATTERN.match(text)
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    return _build_date(year, month, day)


def _build_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None
    # Round-trip check: the constructed date must name the input parts exactly
    if (parsed.year, parsed.month, parsed.day) != (year, month, day):
        return None
    return parsed


class DateParser:
    """
    Memoizing DD/MM/YYYY parser.

    Each instance owns its own bounded cache so tests and independent
    sessions do not share state.
    """

    def __init__(self, cache_size: int = DEFAULT_CACHE_SIZE):
        self._cache_size = cache_size
        self._parse = lru_cache(maxsize=cache_size)(_parse_uncached)

    def parse(self, raw: Any) -> Optional[date]:
        """Parse `raw`; None for empty, malformed or non-string input."""
        if not isinstance(raw, str):
            return None
        return self._parse(raw)

    def is_valid(self, raw: Any) -> bool:
        """True when `raw` is empty or a valid date."""
        if raw is None:
            return True
        if not isinstance(raw, str):
            return False
        return not raw.strip() or self.parse(raw) is not None

    def days_involved(self, start: Any, end: Any) -> int:
        """
        Inclusive day count between two date strings.

        0 when either date is missing or invalid, or when end is before start.
        """
        start_date = self.parse(start)
        end_date = self.parse(end)
        if start_date is None or end_date is None or end_date < start_date:
            return 0
        return (end_date - start_date).days + 1

    def cache_info(self):
        """Expose the underlying LRU statistics."""
        return self._parse.cache_info()

    def clear(self) -> None:
        self._parse.cache_clear()
        logger.debug("date_cache_cleared", capacity=self._cache_size)


def format_date(value: date) -> str:
    """Format a date as zero-padded DD/MM/YYYY."""
    return f"{value.day:02d}/{value.month:02d}/{value.year:04d}"


_default_parser = DateParser()


def normalize_date(raw: Any, parser: Optional[DateParser] = None) -> str:
    """
    Normalize a date string for display or editing.

    Returns "" for empty input and the raw string unchanged when it
    cannot be parsed.
    """
    if raw is None:
        return ""
    parsed = (parser or _default_parser).parse(raw)
    if parsed is None:
        return raw if isinstance(raw, str) else str(raw)
    return format_date(parsed)
