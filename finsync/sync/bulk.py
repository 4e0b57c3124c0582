"""
Bulk submit of a whole collection.

Status machine shown to the user:

    idle -> loading -> success -> idle
                    -> error   -> idle

The result state stays visible for a fixed display window and then
resets to idle on its own. An unavailable backend goes straight to
error without sending anything.
"""

import asyncio
from typing import Any, Callable, Optional

import structlog

from finsync.audit import SyncAuditLogger
from finsync.events import SUBMIT_STATUS_CHANGED, EventBus
from finsync.models.kinds import RecordKind
from finsync.models.records import SubmitStatus
from finsync.services.backend import BackendClient, BackendClientError, HealthProbe

logger = structlog.get_logger(__name__)

BACKEND_UNAVAILABLE = "Backend is not available"


class SubmitError(Exception):
    """Bulk submit failed; kept on the submitter for display."""
    pass


class BulkSubmitter:
    """Replaces the remote collection with the local one on demand."""

    def __init__(
        self,
        kind: RecordKind,
        client: BackendClient,
        probe: HealthProbe,
        collection: Callable[[], list[dict[str, Any]]],
        audit: Optional[SyncAuditLogger] = None,
        reset_after: float = 3.0,
        events: Optional[EventBus] = None,
    ):
        self.kind = kind
        self._client = client
        self._probe = probe
        self._collection = collection
        self._audit = audit or SyncAuditLogger()
        self.reset_after = reset_after
        self.events = events or EventBus()

        self.status = SubmitStatus.IDLE
        self.error: Optional[SubmitError] = None
        self._reset_handle: Optional[asyncio.TimerHandle] = None

    def subscribe(self, handler) -> Callable[[], None]:
        return self.events.subscribe(handler, SUBMIT_STATUS_CHANGED)

    async def submit_data(self) -> bool:
        """Send the whole collection. Returns True on success; never raises."""
        self._cancel_reset()

        if not await self._probe.is_available(self.kind.resource):
            self._fail(SubmitError(BACKEND_UNAVAILABLE))
            return False

        self._set_status(SubmitStatus.LOADING)
        records = self._collection()
        try:
            await self._client.replace_collection(self.kind.resource, records)
        except BackendClientError as e:
            self._fail(SubmitError(str(e)))
            return False

        self.error = None
        self._set_status(SubmitStatus.SUCCESS)
        self._audit.log_submit_succeeded(self.kind.resource, len(records))
        self._schedule_reset()
        return True

    def reset(self) -> None:
        """Return to idle. The last error stays readable."""
        self._reset_handle = None
        self._set_status(SubmitStatus.IDLE)

    async def aclose(self) -> None:
        self._cancel_reset()

    def _fail(self, error: SubmitError) -> None:
        self.error = error
        self._set_status(SubmitStatus.ERROR)
        logger.warning("submit_failed", resource=self.kind.resource, error=str(error))
        self._audit.log_submit_failed(self.kind.resource, str(error))
        self._schedule_reset()

    def _set_status(self, status: SubmitStatus) -> None:
        if status == self.status:
            return
        previous, self.status = self.status, status
        self.events.publish(
            SUBMIT_STATUS_CHANGED,
            {
                "resource": self.kind.resource,
                "status": status.value,
                "previous": previous.value,
                "error": str(self.error) if self.error else None,
            },
        )

    def _schedule_reset(self) -> None:
        self._cancel_reset()
        loop = asyncio.get_running_loop()
        self._reset_handle = loop.call_later(self.reset_after, self.reset)

    def _cancel_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None
