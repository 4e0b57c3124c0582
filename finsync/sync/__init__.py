"""
Sync Package

Everything that moves local state toward the backend: the keyed debounce
timer, the per-record sync scheduler and the bulk submitter.
"""

from finsync.sync.bulk import BACKEND_UNAVAILABLE, BulkSubmitter, SubmitError
from finsync.sync.debounce import DebounceScheduler
from finsync.sync.scheduler import SyncError, SyncScheduler

__all__ = [
    "BACKEND_UNAVAILABLE",
    "BulkSubmitter",
    "DebounceScheduler",
    "SubmitError",
    "SyncError",
    "SyncScheduler",
]
