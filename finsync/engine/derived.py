"""
Derived Field Engine

Computes the read-only columns of each table from its base columns.

DESIGN DECISION: Derivations are pure functions of the exact input values,
memoized in a bounded LRU keyed by those values. Two rows with identical
inputs share one cache entry; a row's derived fields never depend on
anything but its own base fields.

Derivations work on wire (camelCase) dicts so they can run on rows
straight from the backend or the local cache before model validation.
"""

from functools import lru_cache
from typing import Any, Callable, Mapping, Optional

import structlog

from finsync.engine.dates import DateParser
from finsync.engine.numbers import round2, to_number

logger = structlog.get_logger(__name__)

DEFAULT_CACHE_SIZE = 4096

HOURS_PER_DAY = 8
DAYS_PER_SALARY_MONTH = 30

# Wire names each derivation reads, in argument order
DERIVATION_INPUTS: dict[str, tuple[str, ...]] = {
    "budget": ("monthlyCost",),
    "project-tracking": (
        "salary",
        "startDate",
        "endedDate",
        "resources",
        "projectCost",
        "collectAmount",
    ),
    "projects": ("dev", "extra", "invest", "gettingAmount"),
    "subscription-model": ("projectedMonthlyRevenue",),
    "subscription-revenue": ("projectedMonthlyRevenue",),
    # Summary rows derive from other rows, not from themselves
    "financial-summary": (),
}

# Wire names each derivation produces
DERIVED_OUTPUTS: dict[str, tuple[str, ...]] = {
    "budget": ("quarterlyCost", "halfYearlyCost", "annualCost"),
    "project-tracking": (
        "daysInvolved",
        "perDayAmount",
        "investDayAmount",
        "hoursDays",
        "perHrsAmount",
        "pendingAmount",
        "profitForProject",
    ),
    "projects": ("yetToBeRecovered",),
    "subscription-model": ("projectedAnnualRevenue",),
    "subscription-revenue": ("projectedAnnualRevenue",),
    "financial-summary": (),
}

# Financial summary row positions
SUMMARY_ANNUAL_EXPENSES = 0
SUMMARY_MONTHLY_EXPENSES = 1
SUMMARY_DEVELOPMENT_COST = 2
SUMMARY_MONTH_EXPENSES = 3
SUMMARY_MONTH_PROFIT = 4
SUMMARY_TOTAL_PROFIT = 5
SUMMARY_INPUT_ROWS = range(SUMMARY_ANNUAL_EXPENSES, SUMMARY_MONTH_PROFIT)


def budget_costs(monthly_cost: Any) -> dict[str, float]:
    """Quarterly, half-yearly and annual cost from the monthly cost."""
    monthly = to_number(monthly_cost)
    return {
        "quarterlyCost": round2(monthly * 3),
        "halfYearlyCost": round2(monthly * 6),
        "annualCost": round2(monthly * 12),
    }


def project_recovery(dev: Any, extra: Any, invest: Any, getting_amount: Any) -> dict[str, float]:
    """What is still to be recovered on a project."""
    outstanding = to_number(dev) + to_number(extra) + to_number(invest) - to_number(getting_amount)
    return {"yetToBeRecovered": round2(outstanding)}


def annual_revenue(projected_monthly_revenue: Any) -> dict[str, float]:
    return {"projectedAnnualRevenue": round2(to_number(projected_monthly_revenue) * 12)}


def summary_profits(
    annual_expenses: Any,
    monthly_expenses: Any,
    development_cost: Any,
    month_expenses: Any,
) -> dict[int, float]:
    """
    Amounts of the two profit rows of the financial summary, by row position.

    Month profit is monthly expenses less the month's development
    expenses; total profit also takes off annual expenses and the
    development cost.
    """
    annual = to_number(annual_expenses)
    monthly = to_number(monthly_expenses)
    development = to_number(development_cost)
    month = to_number(month_expenses)
    return {
        SUMMARY_MONTH_PROFIT: round2(monthly - month),
        SUMMARY_TOTAL_PROFIT: round2(monthly - annual - development - month),
    }


def resource_multiplier(resources: Any) -> float:
    """
    Head count used for day/hour math.

    Missing, non-numeric and zero all count as one person.
    Totals deliberately use 0 for a missing value instead.
    """
    return to_number(resources, default=1.0) or 1.0


def project_tracking_costs(
    parser: DateParser,
    salary: Any,
    start_date: Any,
    ended_date: Any,
    resources: Any,
    project_cost: Any,
    collect_amount: Any,
) -> dict[str, float]:
    """Day count, day/hour rates, investment, pending amount and profit."""
    people = resource_multiplier(resources)
    days_involved = parser.days_involved(start_date, ended_date)

    per_day_amount = round2(to_number(salary) / DAYS_PER_SALARY_MONTH)
    invest_day_amount = round2(per_day_amount * days_involved)
    collected = to_number(collect_amount)

    return {
        "daysInvolved": days_involved,
        "perDayAmount": per_day_amount,
        "investDayAmount": invest_day_amount,
        "hoursDays": days_involved * HOURS_PER_DAY * people,
        "perHrsAmount": round2((per_day_amount / HOURS_PER_DAY) * people),
        "pendingAmount": round2(to_number(project_cost) - collected),
        "profitForProject": round2(collected - invest_day_amount),
    }


class DerivedFieldEngine:
    """
    Memoized derivations for every record kind.

    One bounded cache per kind; capacity is shared configuration.
    """

    def __init__(
        self,
        date_parser: Optional[DateParser] = None,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ):
        self.date_parser = date_parser or DateParser()
        self._cache_size = cache_size

        def tracking(*args: Any) -> dict[str, float]:
            return project_tracking_costs(self.date_parser, *args)

        self._functions: dict[str, Callable[..., dict[str, float]]] = {
            "budget": lru_cache(maxsize=cache_size)(budget_costs),
            "project-tracking": lru_cache(maxsize=cache_size)(tracking),
            "projects": lru_cache(maxsize=cache_size)(project_recovery),
            "subscription-model": lru_cache(maxsize=cache_size)(annual_revenue),
            "subscription-revenue": lru_cache(maxsize=cache_size)(annual_revenue),
        }
        self._uncached: dict[str, Callable[..., dict[str, float]]] = {
            "budget": budget_costs,
            "project-tracking": tracking,
            "projects": project_recovery,
            "subscription-model": annual_revenue,
            "subscription-revenue": annual_revenue,
        }

    def derive(self, kind: str, record: Mapping[str, Any]) -> dict[str, float]:
        """
        Derived fields for one wire-form record of `kind`.

        Returns a fresh dict; callers may merge it freely.
        """
        try:
            inputs = DERIVATION_INPUTS[kind]
        except KeyError:
            raise ValueError(f"Unknown record kind: {kind}") from None

        if not inputs:
            return {}

        args = tuple(record.get(name) for name in inputs)
        try:
            result = self._functions[kind](*args)
        except TypeError:
            # Unhashable input (a list or dict from a malformed row)
            logger.debug("derived_cache_bypassed", kind=kind)
            result = self._uncached[kind](*args)
        return dict(result)

    def outputs(self, kind: str) -> tuple[str, ...]:
        return DERIVED_OUTPUTS[kind]

    def inputs(self, kind: str) -> tuple[str, ...]:
        return DERIVATION_INPUTS[kind]

    def cache_info(self, kind: str):
        return self._functions[kind].cache_info()

    def clear(self) -> None:
        """Drop every memoized derivation and parsed date."""
        for function in self._functions.values():
            function.cache_clear()
        self.date_parser.clear()
