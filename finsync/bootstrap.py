"""
Session bootstrap.

Loads a store's collection at startup with a fixed fallback order:

1. Backend (health probe first), then the result is cached locally
2. The local cache, if the backend is unavailable or the fetch fails
3. An empty collection, or the starting rows of kinds that have them
   (the financial summary); an empty backend collection is seeded the same way

`loading` is true for the duration and false on every path. Problems
are recorded on the store's `error`; nothing is raised to the caller.
"""

from typing import Optional

import structlog

from finsync.audit import SyncAuditLogger
from finsync.models.kinds import initial_rows
from finsync.services.backend import BackendClient, BackendClientError, HealthProbe
from finsync.services.storage import LocalStoreInterface
from finsync.store import OptimisticStateStore

logger = structlog.get_logger(__name__)

BACKEND_UNAVAILABLE = "Backend is not available. Showing locally saved data."
SOURCE_REMOTE = "remote"
SOURCE_LOCAL = "local"
SOURCE_EMPTY = "empty"


class Bootstrapper:
    """Fills one store from the backend, the local cache or nothing."""

    def __init__(
        self,
        store: OptimisticStateStore,
        client: BackendClient,
        probe: HealthProbe,
        local_store: Optional[LocalStoreInterface] = None,
        audit: Optional[SyncAuditLogger] = None,
    ):
        self.store = store
        self._client = client
        self._probe = probe
        self._local_store = local_store if local_store is not None else store.local_store
        self._audit = audit or SyncAuditLogger()
        self.source: Optional[str] = None

    @property
    def resource(self) -> str:
        return self.store.kind.resource

    async def bootstrap(self) -> str:
        """Load the collection. Returns where it came from."""
        self.store.set_loading(True)
        try:
            error = None
            if await self._probe.is_available(self.resource):
                try:
                    rows = await self._client.fetch_collection(self.resource)
                except BackendClientError as e:
                    error = f"Failed to load data from server: {e}"
                    logger.warning("bootstrap_fetch_failed", resource=self.resource, error=str(e))
                else:
                    if not rows:
                        rows = initial_rows(self.store.kind)
                    count = self.store.replace_all(rows, persist=True, columns=self._cached_columns())
                    self.store.set_error(None)
                    return self._finish(SOURCE_REMOTE, count)
            else:
                error = BACKEND_UNAVAILABLE

            self.store.set_error(error)
            cached = self._load_cached()
            if cached is not None:
                count = self.store.replace_all(cached, persist=False, columns=self._cached_columns())
                return self._finish(SOURCE_LOCAL, count, error)

            count = self.store.replace_all(initial_rows(self.store.kind), persist=False)
            return self._finish(SOURCE_EMPTY, count, error)
        finally:
            self.store.set_loading(False)

    async def retry_connection(self) -> bool:
        """Probe again; when the backend is back, reload from it and clear the error."""
        available = await self._probe.is_available(self.resource)
        if available:
            await self.bootstrap()
            self.store.set_error(None)
        return available

    def _finish(self, source: str, count: int, error: Optional[str] = None) -> str:
        self.source = source
        self._audit.log_bootstrapped(self.resource, source, count, error)
        return source

    def _load_cached(self):
        if self._local_store is None:
            return None
        return self._local_store.load(self.store.kind.storage_key)

    def _cached_columns(self) -> Optional[list[str]]:
        if self._local_store is None or not self.store.kind.allows_dynamic_columns:
            return None
        entries = self._local_store.load(self.store.columns_key)
        if entries is None:
            return None
        return [str(entry["id"]) for entry in entries if entry.get("id")]
