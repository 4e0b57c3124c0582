"""
Record kind descriptors.

A RecordKind says everything the store, validator and sync layer need
to know about one table: its model, where it lives remotely and locally,
and what role each column plays.

Field names here are always wire (camelCase) names.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from finsync.engine.derived import DERIVED_OUTPUTS
from finsync.models.records import (
    BudgetItem,
    FinancialSummaryItem,
    ProjectItem,
    ProjectTrackingItem,
    RecordBase,
    RecordKindName,
    SubscriptionModelItem,
    SubscriptionRevenueItem,
)


class FieldRole:
    """Column roles used by validation and the store."""
    IDENTITY = "identity"
    SEQUENCE = "sequence"
    NUMERIC = "numeric"
    DATE = "date"
    TEXT = "text"
    DERIVED = "derived"


class RecordKind(BaseModel):
    """Static description of one table."""

    model_config = ConfigDict(frozen=True)

    name: RecordKindName
    model: type[RecordBase]
    resource: str
    storage_key: str
    sequence_field: Optional[str] = None
    numeric_fields: tuple[str, ...] = ()
    date_fields: tuple[str, ...] = ()
    text_fields: tuple[str, ...] = ()
    required_text_fields: tuple[str, ...] = ()
    derived_fields: tuple[str, ...] = ()

    # None: any base field change re-derives
    derive_triggers: Optional[frozenset[str]] = None
    derive_on_load: bool = True

    # Budget only: items grouped by section, user-defined numeric columns
    section_field: Optional[str] = None
    allows_dynamic_columns: bool = False

    # Financial summary only: profit rows follow the expense rows above them
    derives_profit_rows: bool = False

    @property
    def core_fields(self) -> tuple[str, ...]:
        """Every column the model declares, in wire form."""
        names = ["id"]
        if self.sequence_field:
            names.append(self.sequence_field)
        return tuple(
            names
            + list(self.numeric_fields)
            + list(self.date_fields)
            + list(self.text_fields)
            + list(self.derived_fields)
        )

    def resolve_field(self, name: str) -> Optional[str]:
        """Wire name for `name` given as wire or attribute name; None if unknown."""
        if name in self.core_fields:
            return name
        info = self.model.model_fields.get(name)
        if info is not None and info.alias in self.core_fields:
            return info.alias
        return None

    def attribute_for(self, wire_name: str) -> Optional[str]:
        """Model attribute behind a wire name; None for extra columns."""
        for attribute, info in self.model.model_fields.items():
            if info.alias == wire_name or attribute == wire_name:
                return attribute
        return None

    def role_of(self, wire_name: str) -> Optional[str]:
        if wire_name == "id":
            return FieldRole.IDENTITY
        if wire_name == self.sequence_field:
            return FieldRole.SEQUENCE
        if wire_name in self.derived_fields:
            return FieldRole.DERIVED
        if wire_name in self.numeric_fields:
            return FieldRole.NUMERIC
        if wire_name in self.date_fields:
            return FieldRole.DATE
        if wire_name in self.text_fields:
            return FieldRole.TEXT
        return None

    def triggers_derivation(self, wire_name: str) -> bool:
        if self.derive_triggers is None:
            return True
        return wire_name in self.derive_triggers


# =============================================================================
# REGISTRY
# =============================================================================

BUDGET = RecordKind(
    name=RecordKindName.BUDGET,
    model=BudgetItem,
    resource="budget-section-items",
    storage_key="budgetData",
    sequence_field="srNo",
    numeric_fields=("monthlyCost",),
    text_fields=("section", "category", "employee"),
    derived_fields=DERIVED_OUTPUTS["budget"],
    section_field="section",
    allows_dynamic_columns=True,
)

PROJECT_TRACKING = RecordKind(
    name=RecordKindName.PROJECT_TRACKING,
    model=ProjectTrackingItem,
    resource="project-tracking",
    storage_key="projectTrackingData",
    sequence_field="slNo",
    numeric_fields=("salary", "projectCost", "collectAmount"),
    date_fields=("startDate", "endedDate"),
    text_fields=("projectWork", "uiUx", "devName", "docStatus", "resources"),
    required_text_fields=("projectWork", "devName"),
    derived_fields=DERIVED_OUTPUTS["project-tracking"],
)

PROJECTS = RecordKind(
    name=RecordKindName.PROJECTS,
    model=ProjectItem,
    resource="projects",
    storage_key="projectData",
    sequence_field="srNo",
    numeric_fields=("dev", "extra", "invest", "gettingAmount"),
    text_fields=("projectName", "status"),
    derived_fields=DERIVED_OUTPUTS["projects"],
)

SUBSCRIPTION_MODEL = RecordKind(
    name=RecordKindName.SUBSCRIPTION_MODEL,
    model=SubscriptionModelItem,
    resource="subscription-model",
    storage_key="subscriptionModelData",
    numeric_fields=(
        "subscriptionsAvailed",
        "projectedMonthlyRevenue",
        "subscribed",
        "profit",
        "getSubscriptionDate",
    ),
    text_fields=("solpType", "revenueSource"),
    derived_fields=DERIVED_OUTPUTS["subscription-model"],
    derive_triggers=frozenset({"projectedMonthlyRevenue"}),
    derive_on_load=False,
)

SUBSCRIPTION_REVENUE = RecordKind(
    name=RecordKindName.SUBSCRIPTION_REVENUE,
    model=SubscriptionRevenueItem,
    resource="subscription-revenue",
    storage_key="subscriptionRevenueData",
    numeric_fields=(
        "subscriptionsAvailed",
        "projectedMonthlyRevenue",
        "subscribed",
        "profit",
    ),
    text_fields=("revenueSource",),
    derived_fields=DERIVED_OUTPUTS["subscription-revenue"],
    derive_triggers=frozenset({"projectedMonthlyRevenue"}),
    derive_on_load=False,
)

FINANCIAL_SUMMARY = RecordKind(
    name=RecordKindName.FINANCIAL_SUMMARY,
    model=FinancialSummaryItem,
    resource="financial-summary",
    storage_key="financialSummaryData",
    numeric_fields=("amount",),
    text_fields=("category",),
    derived_fields=DERIVED_OUTPUTS["financial-summary"],
    derives_profit_rows=True,
)

RECORD_KINDS: dict[RecordKindName, RecordKind] = {
    kind.name: kind
    for kind in (
        BUDGET,
        PROJECT_TRACKING,
        PROJECTS,
        SUBSCRIPTION_MODEL,
        SUBSCRIPTION_REVENUE,
        FINANCIAL_SUMMARY,
    )
}

# Categories the budget totals are written into
ANNUAL_EXPENSES_CATEGORY = "Total Expenses Annual"
MONTHLY_EXPENSES_CATEGORY = "Total Expenses Month"

# Rows a new financial summary starts with when nothing is stored anywhere
INITIAL_ROWS: dict[RecordKindName, tuple[dict, ...]] = {
    RecordKindName.FINANCIAL_SUMMARY: (
        {"category": ANNUAL_EXPENSES_CATEGORY, "amount": 22000},
        {"category": MONTHLY_EXPENSES_CATEGORY, "amount": 2000},
        {"category": "Total Development Cost", "amount": 700},
        {"category": "Development April25 Expenses", "amount": 0},
        {"category": "April25 Profit", "amount": 0},
        {"category": "Total Profit 2025", "amount": 0},
    ),
}


def get_kind(name) -> RecordKind:
    """Look up a kind by enum member or its string value."""
    try:
        return RECORD_KINDS[RecordKindName(name)]
    except ValueError:
        raise ValueError(f"Unknown record kind: {name}") from None


def initial_rows(kind: RecordKind) -> list[dict]:
    """Fresh copies of the rows an empty `kind` collection starts with."""
    return [dict(row) for row in INITIAL_ROWS.get(kind.name, ())]
