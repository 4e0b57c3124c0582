"""
Sync Audit Models for finsync

Every remote interaction and every rejected edit is recorded.
This provides:
1. A visible trail of what reached the backend and what did not
2. Debugging information when client and server diverge
3. Something to show the user next to a failed submit

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncEventType(str, Enum):
    """
    Types of events we audit.

    Each stage of the local-edit → remote-sync pipeline has its own type.
    """
    # Local edits
    EDIT_REJECTED = "edit_rejected"

    # Per-record sync
    SYNC_SUCCEEDED = "sync_succeeded"
    SYNC_FAILED = "sync_failed"
    SYNC_SKIPPED = "sync_skipped"
    ID_RECONCILED = "id_reconciled"

    # Bulk submit
    SUBMIT_SUCCEEDED = "submit_succeeded"
    SUBMIT_FAILED = "submit_failed"

    # Startup
    BOOTSTRAP_REMOTE = "bootstrap_remote"
    BOOTSTRAP_LOCAL = "bootstrap_local"
    BOOTSTRAP_EMPTY = "bootstrap_empty"

    # Local cache
    CACHE_WRITE_FAILED = "cache_write_failed"


class SyncSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SyncEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the sync trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: SyncEventType = Field(
        ...,
        description="Type of event"
    )
    severity: SyncSeverity = Field(
        default=SyncSeverity.INFO,
        description="Event severity"
    )

    # Which table and row this is about
    resource: Optional[str] = Field(
        default=None,
        description="Backend resource, e.g. 'project-tracking'"
    )
    record_id: Optional[str] = Field(
        default=None,
        description="Record id the event relates to"
    )
    operation: Optional[str] = Field(
        default=None,
        description="create / update / delete / submit / fetch"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "resource": self.resource,
            "record_id": self.record_id,
            "operation": self.operation,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class SyncEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = SyncEventBuilder.sync_failed("projects", "abc", "update", "HTTP 500")
    """

    @staticmethod
    def edit_rejected(
        resource: str,
        field: str,
        value: Any,
        reason: str,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.EDIT_REJECTED,
            severity=SyncSeverity.WARNING,
            resource=resource,
            description=f"Rejected edit of {field}",
            details={"field": field, "value": repr(value)},
            error_message=reason,
        )

    @staticmethod
    def sync_succeeded(
        resource: str,
        record_id: str,
        operation: str,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SYNC_SUCCEEDED,
            severity=SyncSeverity.DEBUG,
            resource=resource,
            record_id=record_id,
            operation=operation,
            description=f"{operation} reached the backend",
        )

    @staticmethod
    def sync_failed(
        resource: str,
        record_id: str,
        operation: str,
        error_message: str,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SYNC_FAILED,
            severity=SyncSeverity.ERROR,
            resource=resource,
            record_id=record_id,
            operation=operation,
            description=f"Failed to {operation} record on server",
            error_message=error_message,
        )

    @staticmethod
    def sync_skipped(
        resource: str,
        record_id: str,
        operation: str,
        reason: str,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SYNC_SKIPPED,
            severity=SyncSeverity.WARNING,
            resource=resource,
            record_id=record_id,
            operation=operation,
            description=f"{operation} not sent: {reason}",
        )

    @staticmethod
    def id_reconciled(
        resource: str,
        temp_id: str,
        canonical_id: str,
    ) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.ID_RECONCILED,
            resource=resource,
            record_id=canonical_id,
            operation="create",
            description="Temporary id replaced by backend id",
            details={"temp_id": temp_id, "canonical_id": canonical_id},
        )

    @staticmethod
    def submit_succeeded(resource: str, record_count: int) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SUBMIT_SUCCEEDED,
            resource=resource,
            operation="submit",
            description=f"Submitted {record_count} records",
            details={"record_count": record_count},
        )

    @staticmethod
    def submit_failed(resource: str, error_message: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.SUBMIT_FAILED,
            severity=SyncSeverity.ERROR,
            resource=resource,
            operation="submit",
            description="Bulk submit failed",
            error_message=error_message,
        )

    @staticmethod
    def bootstrapped(
        resource: str,
        source: str,
        record_count: int,
        error_message: Optional[str] = None,
    ) -> SyncEvent:
        event_type = {
            "remote": SyncEventType.BOOTSTRAP_REMOTE,
            "local": SyncEventType.BOOTSTRAP_LOCAL,
        }.get(source, SyncEventType.BOOTSTRAP_EMPTY)
        return SyncEvent(
            event_type=event_type,
            severity=SyncSeverity.WARNING if error_message else SyncSeverity.INFO,
            resource=resource,
            operation="fetch",
            description=f"Loaded {record_count} records from {source}",
            details={"source": source, "record_count": record_count},
            error_message=error_message,
        )

    @staticmethod
    def cache_write_failed(key: str, error_message: str) -> SyncEvent:
        return SyncEvent(
            event_type=SyncEventType.CACHE_WRITE_FAILED,
            severity=SyncSeverity.WARNING,
            description=f"Could not write local cache '{key}'",
            details={"key": key},
            error_message=error_message,
        )
