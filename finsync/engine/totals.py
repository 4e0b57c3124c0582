"""
Totals fold.

Totals are never stored. They are folded on demand over a collection
(or a filtered subset such as one budget section) with "number or 0"
coercion for every field.
"""

from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from finsync.engine.numbers import round2, to_number

# Wire names summed in each table's totals row
TOTAL_FIELDS: dict[str, tuple[str, ...]] = {
    "budget": ("monthlyCost", "quarterlyCost", "halfYearlyCost", "annualCost"),
    "project-tracking": (
        "salary",
        "daysInvolved",
        "hoursDays",
        "perDayAmount",
        "investDayAmount",
        "perHrsAmount",
        "projectCost",
        "collectAmount",
        "pendingAmount",
        "profitForProject",
    ),
    "projects": ("dev", "extra", "invest", "gettingAmount", "yetToBeRecovered"),
    "subscription-model": (
        "subscriptionsAvailed",
        "projectedMonthlyRevenue",
        "projectedAnnualRevenue",
        "subscribed",
        "profit",
    ),
    "subscription-revenue": (
        "subscriptionsAvailed",
        "projectedMonthlyRevenue",
        "projectedAnnualRevenue",
        "subscribed",
        "profit",
    ),
    "financial-summary": ("amount",),
}

Row = Mapping[str, Any]


def fold_totals(
    rows: Iterable[Row],
    fields: Sequence[str],
    predicate: Optional[Callable[[Row], bool]] = None,
) -> dict[str, float]:
    """Sum `fields` over `rows`, optionally only those matching `predicate`."""
    sums = {name: 0.0 for name in fields}
    for row in rows:
        if predicate is not None and not predicate(row):
            continue
        for name in fields:
            sums[name] += to_number(row.get(name))
    return {name: round2(total) for name, total in sums.items()}


def totals_for(
    kind: str,
    rows: Iterable[Row],
    predicate: Optional[Callable[[Row], bool]] = None,
    extra_fields: Sequence[str] = (),
) -> dict[str, float]:
    """Totals row for a table of `kind`, plus any dynamic numeric columns."""
    try:
        fields = TOTAL_FIELDS[kind]
    except KeyError:
        raise ValueError(f"Unknown record kind: {kind}") from None
    extras = tuple(name for name in extra_fields if name not in fields)
    return fold_totals(rows, fields + extras, predicate)
