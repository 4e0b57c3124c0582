"""
Data Models Package

This package contains all Pydantic models used in finsync.
All rows flowing between the store, the cache and the backend conform to these schemas.
"""

from finsync.models.records import (
    TEMP_ID_PREFIX,
    BudgetItem,
    FinancialSummaryItem,
    ProjectItem,
    ProjectTrackingItem,
    RecordBase,
    RecordKindName,
    SectionView,
    SubmitStatus,
    SubscriptionModelItem,
    SubscriptionRevenueItem,
    SyncOperation,
    is_temp_id,
)
from finsync.models.audit import (
    SyncEvent,
    SyncEventBuilder,
    SyncEventType,
    SyncSeverity,
)
from finsync.models.kinds import (
    RECORD_KINDS,
    FieldRole,
    RecordKind,
    get_kind,
)

__all__ = [
    # Kinds
    "RECORD_KINDS",
    "FieldRole",
    "RecordKind",
    "get_kind",
    # Record models
    "TEMP_ID_PREFIX",
    "BudgetItem",
    "FinancialSummaryItem",
    "ProjectItem",
    "ProjectTrackingItem",
    "RecordBase",
    "RecordKindName",
    "SectionView",
    "SubmitStatus",
    "SubscriptionModelItem",
    "SubscriptionRevenueItem",
    "SyncOperation",
    "is_temp_id",
    # Audit models
    "SyncEvent",
    "SyncEventBuilder",
    "SyncEventType",
    "SyncSeverity",
]
