"""
Computation engine.

Pure, memoized calculations with no knowledge of storage or the network.
"""

from finsync.engine.dates import DateParser, format_date, normalize_date
from finsync.engine.derived import DerivedFieldEngine
from finsync.engine.numbers import parse_number, round2, to_number
from finsync.engine.totals import TOTAL_FIELDS, fold_totals, totals_for

__all__ = [
    "DateParser",
    "DerivedFieldEngine",
    "TOTAL_FIELDS",
    "fold_totals",
    "format_date",
    "normalize_date",
    "parse_number",
    "round2",
    "to_number",
    "totals_for",
]
