"""
Record Models for finsync

These models define the schemas of the rows users edit in each table.
They are designed to:
1. Accept whatever the backend or the local cache hands us without crashing
2. Serialize back to the exact camelCase wire format the backend expects
3. Preserve columns we do not know about (dynamic budget columns)

DESIGN DECISION: Ingest is lenient, edits are strict.
Wire and cache data is coerced the way the tables always have
("number or 0", text or ""), because refusing a stored row would make a
whole collection unreadable. User edits go through the field validator
first and never reach these coercions with garbage.
"""

import time
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    model_validator,
)
from pydantic.alias_generators import to_camel

from finsync.engine.numbers import to_number


TEMP_ID_PREFIX = "temp_"


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class RecordKindName(str, Enum):
    """The tables finsync knows how to keep in sync."""
    BUDGET = "budget"
    PROJECT_TRACKING = "project-tracking"
    PROJECTS = "projects"
    SUBSCRIPTION_MODEL = "subscription-model"
    SUBSCRIPTION_REVENUE = "subscription-revenue"
    FINANCIAL_SUMMARY = "financial-summary"


class SyncOperation(str, Enum):
    """Per-record backend operations."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SubmitStatus(str, Enum):
    """
    Bulk submit status shown to the user.

    idle → loading → {success, error} → idle
    """
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


# =============================================================================
# LENIENT FIELD TYPES
# =============================================================================

def _lenient_amount(value: Any) -> float:
    return to_number(value)


def _lenient_count(value: Any) -> int:
    return int(to_number(value))


def _lenient_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


Amount = Annotated[float, BeforeValidator(_lenient_amount)]
Count = Annotated[int, BeforeValidator(_lenient_count)]
Text = Annotated[str, BeforeValidator(_lenient_text)]


def is_temp_id(record_id: Optional[str]) -> bool:
    """True for client-generated ids the backend has not confirmed yet."""
    return bool(record_id) and str(record_id).startswith(TEMP_ID_PREFIX)


# =============================================================================
# BASE RECORD
# =============================================================================

class RecordBase(BaseModel):
    """
    Common shape of every table row.

    Python attributes are snake_case; the wire and cache form is camelCase.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: Annotated[Text, Field(min_length=1, description="Temporary or canonical record id")]

    @model_validator(mode="before")
    @classmethod
    def adopt_backend_id(cls, data: Any) -> Any:
        """Document stores return `_id`; fold it into `id`."""
        if isinstance(data, dict) and "_id" in data:
            data = dict(data)
            backend_id = data.pop("_id")
            if not data.get("id") and backend_id not in (None, ""):
                data["id"] = str(backend_id)
        return data

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON-compatible form."""
        return self.model_dump(mode="json", by_alias=True)

    @property
    def is_temporary(self) -> bool:
        return is_temp_id(self.id)


# =============================================================================
# TABLE ROWS
# =============================================================================

class BudgetItem(RecordBase):
    """
    One budget line, owned by a named section.

    Extra numeric columns added by the user live alongside the core ones.
    """
    sr_no: Count = Field(default=0, description="1-based index within the section")
    section: Text = Field(default="General", description="Name of the owning section")
    category: Text = ""
    employee: Text = ""
    monthly_cost: Amount = Field(default=0.0, description="Monthly cost in INR")

    # Derived
    quarterly_cost: Amount = 0.0
    half_yearly_cost: Amount = 0.0
    annual_cost: Amount = 0.0


class ProjectTrackingItem(RecordBase):
    """
    Time and money spent by one developer on one project.

    Dates are kept exactly as the user typed them (DD/MM/YYYY).
    """
    sl_no: Count = Field(default=0, description="1-based index within the table")
    project_work: Text = "New Project"
    ui_ux: Text = ""
    dev_name: Text = "New Developer"
    doc_status: Text = "In Progress"
    start_date: Text = ""
    ended_date: Text = ""
    resources: Text = Field(default="", description="Head count, kept as entered")
    salary: Amount = 0.0
    project_cost: Amount = 0.0
    collect_amount: Amount = 0.0

    # Derived
    days_involved: Count = 0
    hours_days: Amount = 0.0
    per_day_amount: Amount = 0.0
    invest_day_amount: Amount = 0.0
    per_hrs_amount: Amount = 0.0
    pending_amount: Amount = 0.0
    profit_for_project: Amount = 0.0


class ProjectItem(RecordBase):
    """Portfolio row: what a project cost and how much has come back."""
    sr_no: Count = 0
    project_name: Text = "New Project"
    status: Text = "In Progress"
    dev: Amount = 0.0
    extra: Amount = 0.0
    invest: Amount = 0.0
    getting_amount: Amount = 0.0

    # Derived
    yet_to_be_recovered: Amount = 0.0


class SubscriptionModelItem(RecordBase):
    """A subscription plan offered through a channel."""
    solp_type: Text = "Online"
    revenue_source: Text = "New Plan"
    subscriptions_availed: Amount = 0.0
    projected_monthly_revenue: Amount = 0.0
    subscribed: Amount = 0.0
    profit: Amount = 0.0
    get_subscription_date: Count = Field(
        default_factory=lambda: int(time.time() * 1000),
        description="Epoch milliseconds"
    )

    # Derived
    projected_annual_revenue: Amount = 0.0


class SubscriptionRevenueItem(RecordBase):
    """Projected and realized revenue from one subscription source."""
    revenue_source: Text = "New Revenue Source"
    subscriptions_availed: Amount = 0.0
    projected_monthly_revenue: Amount = 0.0
    subscribed: Amount = 0.0
    profit: Amount = 0.0

    # Derived
    projected_annual_revenue: Amount = 0.0


class FinancialSummaryItem(RecordBase):
    """
    One line of the financial summary.

    The first four rows are expense figures; the two after them are
    profits computed from those (see engine.derived.summary_profits).
    """
    category: Text = ""
    amount: Amount = 0.0


# =============================================================================
# VIEWS
# =============================================================================

class SectionView(BaseModel):
    """A budget section and the items it owns, with its totals."""

    name: str
    items: list[BudgetItem] = Field(default_factory=list)
    totals: dict[str, float] = Field(default_factory=dict)
