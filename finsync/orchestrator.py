"""
Main Orchestrator for finsync

This module ties together all the components for one editable table:

    store  <- user edits (validated, derived, applied optimistically)
      |-> local cache      (debounced write)
      |-> sync scheduler   (debounced, health-gated per-record calls)
    submitter             (whole-collection replace on demand)
    bootstrapper          (remote -> local -> empty at startup)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Local state changes never wait on the network
- No remote call is made without a health check
- Every remote outcome is audited

Sessions built by create_app_components share one HTTP client, one
derivation engine and one audit trail.
"""

from pathlib import Path
from typing import Callable, Iterable, Optional, Union

import httpx
import structlog

from finsync.audit import SyncAuditLogger, configure_logging
from finsync.bootstrap import Bootstrapper
from finsync.config import Settings, get_settings
from finsync.engine.dates import DateParser
from finsync.engine.derived import DerivedFieldEngine
from finsync.events import RECORDS_CHANGED, EventBus
from finsync.models.kinds import RECORD_KINDS, RecordKind, get_kind
from finsync.models.records import RecordKindName
from finsync.services.backend import BackendClient, HealthProbe
from finsync.services.storage import JsonFileLocalStore, LocalStoreInterface
from finsync.store import OptimisticStateStore
from finsync.store.state import Confirm
from finsync.sync import BulkSubmitter, SyncScheduler

logger = structlog.get_logger(__name__)


class SyncSession:
    """
    Everything needed to edit one table.

    Flow:
    1. start() -> bootstrap the collection
    2. store.mutate_field / add_record / remove_record as the user edits
    3. submit_data() when the user asks for a full save
    4. aclose() -> send what is pending, write the cache, release the client
    """

    def __init__(
        self,
        store: OptimisticStateStore,
        scheduler: SyncScheduler,
        submitter: BulkSubmitter,
        bootstrapper: Bootstrapper,
        client: BackendClient,
        owns_client: bool = False,
    ):
        self.store = store
        self.scheduler = scheduler
        self.submitter = submitter
        self.bootstrapper = bootstrapper
        self._client = client
        self._owns_client = owns_client

    @property
    def kind(self) -> RecordKind:
        return self.store.kind

    @property
    def client(self) -> BackendClient:
        return self._client

    async def start(self) -> str:
        return await self.bootstrapper.bootstrap()

    async def submit_data(self) -> bool:
        return await self.submitter.submit_data()

    async def retry_connection(self) -> bool:
        return await self.bootstrapper.retry_connection()

    async def aclose(self) -> None:
        await self.scheduler.flush()
        await self.store.aclose()
        await self.submitter.aclose()
        if self._owns_client:
            await self._client.aclose()


def create_session(
    kind: Union[RecordKind, RecordKindName, str],
    client: Optional[BackendClient] = None,
    local_store: Optional[LocalStoreInterface] = None,
    confirm: Optional[Confirm] = None,
    engine: Optional[DerivedFieldEngine] = None,
    audit: Optional[SyncAuditLogger] = None,
    settings: Optional[Settings] = None,
) -> SyncSession:
    """
    Factory function for a single table session.

    Args:
        kind: Which table
        client: Shared backend client; a private one is created if omitted
        local_store: Cache backend; a JSON file store in the configured
                     data directory if omitted
        confirm: Asked before anything is removed
    """
    settings = settings or get_settings()
    kind = kind if isinstance(kind, RecordKind) else get_kind(kind)
    sync_settings = settings.sync

    owns_client = client is None
    client = client or BackendClient(settings=settings.backend)
    if local_store is None:
        local_store = JsonFileLocalStore()
    if engine is None:
        cache = settings.cache
        engine = DerivedFieldEngine(DateParser(cache.date_cache_size), cache.derived_cache_size)
    audit = audit or SyncAuditLogger()
    events = EventBus()

    probe = HealthProbe(client)
    scheduler = SyncScheduler(
        kind,
        client,
        probe,
        audit=audit,
        delay=sync_settings.sync_debounce_seconds,
    )
    store = OptimisticStateStore(
        kind,
        engine=engine,
        local_store=local_store,
        scheduler=scheduler,
        confirm=confirm,
        audit=audit,
        events=events,
        persist_delay=sync_settings.persist_debounce_seconds,
    )
    submitter = BulkSubmitter(
        kind,
        client,
        probe,
        collection=store.to_wire,
        audit=audit,
        reset_after=sync_settings.status_reset_seconds,
        events=events,
    )
    bootstrapper = Bootstrapper(store, client, probe, local_store=local_store, audit=audit)

    return SyncSession(store, scheduler, submitter, bootstrapper, client, owns_client=owns_client)


def create_app_components(
    kinds: Optional[Iterable[Union[RecordKindName, str]]] = None,
    base_url: Optional[str] = None,
    data_dir: Optional[Path] = None,
    confirm: Optional[Confirm] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> dict[RecordKindName, SyncSession]:
    """
    Factory function to create a session for every table.

    Args:
        kinds: Tables to open (default: all of them)
        base_url: Backend URL override
        data_dir: Local cache directory override
        confirm: Asked before anything is removed
        http_client: Pre-built httpx client (tests pass one with a MockTransport)

    Returns:
        {kind name: session}
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    client = BackendClient(base_url=base_url, http_client=http_client, settings=settings.backend)
    local_store = JsonFileLocalStore(directory=data_dir)
    cache = settings.cache
    engine = DerivedFieldEngine(DateParser(cache.date_cache_size), cache.derived_cache_size)
    audit = SyncAuditLogger()

    names = [RecordKindName(name) for name in kinds] if kinds is not None else list(RECORD_KINDS)
    sessions = {
        name: create_session(
            name,
            client=client,
            local_store=local_store,
            confirm=confirm,
            engine=engine,
            audit=audit,
            settings=settings,
        )
        for name in names
    }
    budget = sessions.get(RecordKindName.BUDGET)
    summary = sessions.get(RecordKindName.FINANCIAL_SUMMARY)
    if budget is not None and summary is not None:
        link_budget_totals(budget.store, summary.store)

    logger.info("sessions_created", kinds=[name.value for name in names], base_url=client.base_url)
    return sessions


def link_budget_totals(budget: OptimisticStateStore, summary: OptimisticStateStore) -> Callable[[], None]:
    """
    Keep the summary's expense rows equal to the budget totals.

    Applied whenever the budget changes, and when the summary is
    reloaded while the budget holds records. Returns a function that
    undoes the link.
    """

    def apply_totals(event) -> None:
        totals = budget.totals()
        summary.apply_budget_totals(totals["annualCost"], totals["monthlyCost"])

    def on_summary_change(event) -> None:
        if event.payload.get("reason") == "replace" and len(budget):
            apply_totals(event)

    unsubscribers = [
        budget.subscribe(apply_totals, RECORDS_CHANGED),
        summary.subscribe(on_summary_change, RECORDS_CHANGED),
    ]

    def unlink() -> None:
        for unsubscribe in unsubscribers:
            unsubscribe()

    return unlink


async def close_app_components(sessions: dict[RecordKindName, SyncSession]) -> None:
    """Close every session, then the HTTP client they share."""
    clients = []
    for session in sessions.values():
        await session.aclose()
        if session.client not in clients:
            clients.append(session.client)
    for client in clients:
        await client.aclose()
