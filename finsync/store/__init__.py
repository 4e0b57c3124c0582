"""
Store Package

The optimistic in-memory collection and the commands that change it.
"""

from finsync.store.commands import (
    DEFAULT_SECTION,
    AddColumn,
    AddRecord,
    ApplyBudgetTotals,
    CommandContext,
    CommandResult,
    MutateField,
    RemoveColumn,
    RemoveRecord,
    RemoveSection,
    new_temp_id,
)
from finsync.store.state import OptimisticStateStore

__all__ = [
    "DEFAULT_SECTION",
    "AddColumn",
    "AddRecord",
    "ApplyBudgetTotals",
    "CommandContext",
    "CommandResult",
    "MutateField",
    "OptimisticStateStore",
    "RemoveColumn",
    "RemoveRecord",
    "RemoveSection",
    "new_temp_id",
]
