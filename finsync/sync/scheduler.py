"""
Debounced per-record sync to the backend.

DESIGN DECISION: Local state is authoritative the moment an edit is made.
The scheduler only tries to tell the backend about it:

1. One pending timer per (record id, operation); re-enqueuing replaces
   the payload and restarts the timer, so a burst of edits to a record
   becomes one request carrying the last state
2. Every dispatch is gated by the health probe; an unavailable backend
   means the request is dropped and logged, never queued for later
3. Failures are logged as audit events and never roll back local state

Records created locally carry a temporary id until the backend assigns
one. Work for a record whose create has not been sent yet is coalesced
into that create; work for a record whose create is in flight waits for
the canonical id.
"""

import asyncio
from typing import Any, Callable, Optional

import structlog

from finsync.audit import SyncAuditLogger
from finsync.models.kinds import RecordKind
from finsync.models.records import SyncOperation, is_temp_id
from finsync.services.backend import (
    BackendClient,
    BackendClientError,
    HealthProbe,
    extract_canonical_id,
)
from finsync.sync.debounce import DebounceScheduler

logger = structlog.get_logger(__name__)

Reconciler = Callable[[str, str], bool]


class SyncError(Exception):
    """A create/update/delete failed after the local change was applied."""

    def __init__(self, message: str, resource: str, record_id: str, operation: SyncOperation):
        super().__init__(message)
        self.resource = resource
        self.record_id = record_id
        self.operation = operation


class SyncScheduler:
    """Debounces, gates and dispatches record operations for one collection."""

    def __init__(
        self,
        kind: RecordKind,
        client: BackendClient,
        probe: HealthProbe,
        audit: Optional[SyncAuditLogger] = None,
        delay: float = 0.5,
    ):
        self.kind = kind
        self._client = client
        self._probe = probe
        self._audit = audit or SyncAuditLogger()
        self._debounce = DebounceScheduler(self._dispatch, delay)
        self._reconcile: Optional[Reconciler] = None

        # temp id -> future resolving to the canonical id (None if the create failed)
        self._creating: dict[str, asyncio.Future] = {}
        self._resolved: dict[str, str] = {}
        self.last_error: Optional[SyncError] = None

    @property
    def resource(self) -> str:
        return self.kind.resource

    def attach(self, reconcile: Reconciler) -> None:
        """Register the function that rewrites a temp id in the owning store."""
        self._reconcile = reconcile

    # -------------------------------------------------------------------------
    # Enqueue
    # -------------------------------------------------------------------------

    def enqueue(
        self,
        operation: SyncOperation,
        record_id: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        """Schedule `operation` for `record_id`, coalescing with pending work."""
        operation = SyncOperation(operation)
        create_key = (record_id, SyncOperation.CREATE)
        pending_create = create_key in self._debounce

        if operation == SyncOperation.UPDATE and pending_create:
            self._debounce.schedule(create_key, payload)
            return

        if operation == SyncOperation.DELETE:
            self._debounce.cancel((record_id, SyncOperation.UPDATE))
            if pending_create:
                self._debounce.cancel(create_key)
                self._audit.log_sync_skipped(
                    self.resource, record_id, SyncOperation.DELETE.value,
                    "record was never sent to the backend",
                )
                return

        self._debounce.schedule((record_id, operation), payload)

    def pending(self, record_id: str, operation: SyncOperation) -> Optional[dict[str, Any]]:
        return self._debounce.pending((record_id, SyncOperation(operation)))

    @property
    def pending_count(self) -> int:
        return len(self._debounce)

    async def flush(self) -> None:
        """Send everything pending now and wait for it."""
        await self._debounce.flush()

    async def drain(self) -> None:
        await self._debounce.drain()

    async def aclose(self) -> None:
        """Cancel pending timers; requests already sent are awaited."""
        await self._debounce.aclose()

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def _dispatch(self, key: tuple[str, SyncOperation], payload: Optional[dict[str, Any]]) -> None:
        record_id, operation = key

        if operation == SyncOperation.CREATE:
            await self._dispatch_create(record_id, payload or {})
            return

        target_id = await self._resolve_id(record_id)
        if target_id is None:
            self._audit.log_sync_skipped(
                self.resource, record_id, operation.value,
                "record has no backend id",
            )
            return

        if not await self._probe.is_available(self.resource):
            self._audit.log_sync_skipped(self.resource, target_id, operation.value, "backend unavailable")
            return

        try:
            if operation == SyncOperation.UPDATE:
                body = {**(payload or {}), "id": target_id}
                await self._client.update_record(self.resource, target_id, body)
            else:
                await self._client.delete_record(self.resource, target_id)
        except BackendClientError as e:
            self._record_failure(target_id, operation, e)
            return

        self._audit.log_sync_succeeded(self.resource, target_id, operation.value)

    async def _dispatch_create(self, temp_id: str, payload: dict[str, Any]) -> None:
        if not await self._probe.is_available(self.resource):
            self._audit.log_sync_skipped(
                self.resource, temp_id, SyncOperation.CREATE.value, "backend unavailable",
            )
            return

        future = asyncio.get_running_loop().create_future()
        self._creating[temp_id] = future
        canonical_id: Optional[str] = None
        try:
            body = dict(payload)
            if is_temp_id(body.get("id")):
                # The backend assigns the real id
                body.pop("id")
            response = await self._client.create_record(self.resource, body)
            canonical_id = extract_canonical_id(response)
        except BackendClientError as e:
            self._record_failure(temp_id, SyncOperation.CREATE, e)
        finally:
            self._creating.pop(temp_id, None)
            future.set_result(canonical_id)

        if canonical_id is None:
            return

        self._audit.log_sync_succeeded(self.resource, canonical_id, SyncOperation.CREATE.value)
        if canonical_id != temp_id:
            self._adopt_canonical_id(temp_id, canonical_id)

    def _adopt_canonical_id(self, temp_id: str, canonical_id: str) -> None:
        self._resolved[temp_id] = canonical_id
        if self._reconcile is not None and self._reconcile(temp_id, canonical_id):
            self._audit.log_id_reconciled(self.resource, temp_id, canonical_id)
        for operation in (SyncOperation.UPDATE, SyncOperation.DELETE):
            self._debounce.rekey((temp_id, operation), (canonical_id, operation))

    async def _resolve_id(self, record_id: str) -> Optional[str]:
        """Canonical id for `record_id`, waiting for an in-flight create if needed."""
        if not is_temp_id(record_id):
            return record_id
        if record_id in self._resolved:
            return self._resolved[record_id]
        future = self._creating.get(record_id)
        if future is None:
            return None
        return await asyncio.shield(future)

    def _record_failure(self, record_id: str, operation: SyncOperation, error: Exception) -> None:
        failure = SyncError(str(error), self.resource, record_id, operation)
        self.last_error = failure
        logger.warning(
            "sync_failed",
            resource=self.resource,
            record_id=record_id,
            operation=operation.value,
            error=str(error),
        )
        self._audit.log_sync_failed(self.resource, record_id, operation.value, str(error))
