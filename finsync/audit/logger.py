"""
Sync Audit Logger

DESIGN DECISION: Every remote interaction is logged.
This provides:
1. Traceability of what the backend has and has not seen
2. Debugging capability when client and server diverge
3. A recent-events list the UI can show next to an error

The audit logger:
- Is synchronous and cheap (no I/O beyond the log handler)
- Never raises (a logging failure must not break an edit)
- Keeps a bounded history of recent events
"""

import logging
from collections import deque
from typing import Optional

import structlog

from finsync.models.audit import SyncEvent, SyncEventBuilder, SyncSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

DEFAULT_HISTORY_SIZE = 200


def configure_logging(level: str = "INFO") -> None:
    """
    Route finsync loggers to stderr at `level`.

    structlog renders JSON; the stdlib handler only decides where it goes.
    """
    finsync_logger = logging.getLogger("finsync")
    finsync_logger.setLevel(level.upper())
    if not finsync_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        finsync_logger.addHandler(handler)
        finsync_logger.propagate = False


class SyncAuditLogger:
    """
    Central audit logging service for sync activity.

    Logs events to:
    1. Structured local log (for debugging)
    2. An in-memory ring buffer (for display)
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE):
        self._history: deque[SyncEvent] = deque(maxlen=history_size)
        self._logger = structlog.get_logger("finsync.audit")

    def log(self, event: SyncEvent) -> None:
        """
        Log an audit event.

        Always logs locally and records the event in history.
        """
        self._history.append(event)
        log_dict = event.to_log_dict()

        try:
            if event.severity == SyncSeverity.ERROR:
                self._logger.error("sync_event", **log_dict)
            elif event.severity == SyncSeverity.WARNING:
                self._logger.warning("sync_event", **log_dict)
            elif event.severity == SyncSeverity.DEBUG:
                self._logger.debug("sync_event", **log_dict)
            else:
                self._logger.info("sync_event", **log_dict)
        except Exception as e:
            # A broken handler must not break the edit that triggered it
            logging.getLogger("finsync.audit").warning("audit log failed: %s", e)

    def recent(self, limit: Optional[int] = None) -> list[SyncEvent]:
        """Most recent events, newest first."""
        events = list(reversed(self._history))
        return events if limit is None else events[:limit]

    def failures(self) -> list[SyncEvent]:
        """Error-level events still in history, newest first."""
        return [e for e in self.recent() if e.severity == SyncSeverity.ERROR]

    def clear(self) -> None:
        self._history.clear()

    def log_edit_rejected(self, resource: str, field: str, value, reason: str) -> None:
        self.log(SyncEventBuilder.edit_rejected(resource, field, value, reason))

    def log_sync_succeeded(self, resource: str, record_id: str, operation: str) -> None:
        self.log(SyncEventBuilder.sync_succeeded(resource, record_id, operation))

    def log_sync_failed(
        self,
        resource: str,
        record_id: str,
        operation: str,
        error_message: str,
    ) -> None:
        self.log(SyncEventBuilder.sync_failed(resource, record_id, operation, error_message))

    def log_sync_skipped(
        self,
        resource: str,
        record_id: str,
        operation: str,
        reason: str,
    ) -> None:
        self.log(SyncEventBuilder.sync_skipped(resource, record_id, operation, reason))

    def log_id_reconciled(self, resource: str, temp_id: str, canonical_id: str) -> None:
        self.log(SyncEventBuilder.id_reconciled(resource, temp_id, canonical_id))

    def log_submit_succeeded(self, resource: str, record_count: int) -> None:
        self.log(SyncEventBuilder.submit_succeeded(resource, record_count))

    def log_submit_failed(self, resource: str, error_message: str) -> None:
        self.log(SyncEventBuilder.submit_failed(resource, error_message))

    def log_bootstrapped(
        self,
        resource: str,
        source: str,
        record_count: int,
        error_message: Optional[str] = None,
    ) -> None:
        self.log(SyncEventBuilder.bootstrapped(resource, source, record_count, error_message))

    def log_cache_write_failed(self, key: str, error_message: str) -> None:
        self.log(SyncEventBuilder.cache_write_failed(key, error_message))
