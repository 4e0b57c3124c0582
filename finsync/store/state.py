"""
Optimistic State Store

DESIGN DECISION: The in-memory collection is the source of truth for the UI.

Every change goes through one entry point (_execute):
1. The command validates and builds the new record list (or raises
   ValidationError with nothing changed)
2. The new list is swapped in and subscribers are notified
3. A local cache write is scheduled (debounced)
4. The matching remote operations are handed to the sync scheduler

Remote failures never roll anything back; they surface as audit events
and as the store's `error` for display.
"""

from typing import Any, Callable, Iterable, Mapping, Optional, Union

import structlog
from pydantic import ValidationError as ModelValidationError

from finsync.audit import SyncAuditLogger
from finsync.engine.derived import DerivedFieldEngine
from finsync.engine.numbers import parse_number
from finsync.engine.totals import totals_for
from finsync.events import (
    ALL_EVENTS,
    ERROR_CHANGED,
    LOADING_CHANGED,
    RECORDS_CHANGED,
    EventBus,
)
from finsync.models.kinds import RecordKind, get_kind
from finsync.models.records import RecordBase, SectionView, SyncOperation
from finsync.services.storage import LocalStoreInterface
from finsync.store.commands import (
    AddColumn,
    AddRecord,
    ApplyBudgetTotals,
    CommandContext,
    CommandResult,
    MutateField,
    RemoveColumn,
    RemoveRecord,
    RemoveSection,
    build_record,
    check_index,
    new_temp_id,
    renumber,
    section_of,
    sections_in_order,
)
from finsync.sync.debounce import DebounceScheduler
from finsync.sync.scheduler import SyncScheduler
from finsync.validation import FieldValidator, ValidationError

logger = structlog.get_logger(__name__)

Confirm = Callable[[str], bool]


def _always_confirm(message: str) -> bool:
    return True


class OptimisticStateStore:
    """
    One editable collection of records.

    Usage:
        store = OptimisticStateStore("project-tracking", scheduler=scheduler, confirm=ask_user)
        store.add_record({"devName": "Asha", "salary": 3000})
        store.mutate_field(0, "startDate", "01/04/2025")
    """

    def __init__(
        self,
        kind: Union[RecordKind, str],
        engine: Optional[DerivedFieldEngine] = None,
        validator: Optional[FieldValidator] = None,
        local_store: Optional[LocalStoreInterface] = None,
        scheduler: Optional[SyncScheduler] = None,
        confirm: Optional[Confirm] = None,
        audit: Optional[SyncAuditLogger] = None,
        events: Optional[EventBus] = None,
        persist_delay: float = 1.0,
    ):
        self.kind = kind if isinstance(kind, RecordKind) else get_kind(kind)
        self.engine = engine or DerivedFieldEngine()
        self.validator = validator or FieldValidator(self.engine.date_parser)
        self.local_store = local_store
        self._sync = scheduler
        self._confirm = confirm or _always_confirm
        self._audit = audit or SyncAuditLogger()
        self.events = events or EventBus()
        self._persist = DebounceScheduler(self._write_cache, persist_delay)

        self._records: list[RecordBase] = []
        self.columns: tuple[str, ...] = ()
        self.loading = False
        self.error: Optional[str] = None
        self.editing_cell: Optional[tuple[int, str]] = None

        if scheduler is not None:
            scheduler.attach(self.reconcile_id)

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    @property
    def records(self) -> tuple[RecordBase, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> RecordBase:
        return self._records[index]

    def to_wire(self) -> list[dict[str, Any]]:
        """The collection as the backend and the local cache see it."""
        return [record.to_wire() for record in self._records]

    def index_of(self, record_id: str) -> Optional[int]:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                return index
        return None

    def totals(self, predicate: Optional[Callable[[RecordBase], bool]] = None) -> dict[str, float]:
        """Totals row over all records, or those matching `predicate`."""
        rows = [r.to_wire() for r in self._records if predicate is None or predicate(r)]
        return totals_for(self.kind.name.value, rows, extra_fields=self.columns)

    @property
    def context(self) -> CommandContext:
        return CommandContext(self.kind, self.engine, self.validator, self.columns)

    # -------------------------------------------------------------------------
    # Record operations
    # -------------------------------------------------------------------------

    def mutate_field(self, record_index: int, field: str, raw_value: Any) -> RecordBase:
        """
        Validate and write one cell.

        Raises:
            ValidationError: Unknown or read-only field, bad value, bad index
        """
        self._execute(MutateField(record_index, field, raw_value))
        return self._records[record_index]

    def add_record(
        self,
        partial: Optional[Mapping[str, Any]] = None,
        section: Optional[str] = None,
    ) -> RecordBase:
        """
        Append a record built from the kind's defaults and `partial`.

        Raises:
            ValidationError: A supplied field is invalid or the id is taken
        """
        result = self._execute(AddRecord(partial, section))
        created_id = result.changes[0][1]
        return self._records[self.index_of(created_id)]

    def remove_record(self, record_index: int) -> Optional[RecordBase]:
        """Remove one record after confirmation. None when the user declines."""
        check_index(self._records, record_index)
        if not self._confirm("Are you sure you want to remove this record?"):
            return None
        result = self._execute(RemoveRecord(record_index))
        return result.removed[0]

    # -------------------------------------------------------------------------
    # Budget sections and columns
    # -------------------------------------------------------------------------

    def sections(self) -> list[SectionView]:
        """Budget sections in first-appearance order, each with its totals."""
        if self.kind.section_field is None:
            return []
        return [
            SectionView(
                name=name,
                items=self.section_records(name),
                totals=self.totals(lambda r, name=name: section_of(self.kind, r) == name),
            )
            for name in sections_in_order(self.kind, self._records)
        ]

    def section_records(self, name: str) -> list[RecordBase]:
        return [r for r in self._records if section_of(self.kind, r) == name]

    def section_totals(self) -> dict[str, dict[str, float]]:
        return {view.name: view.totals for view in self.sections()}

    def remove_section(self, name: str) -> list[RecordBase]:
        """Remove a whole budget section after confirmation."""
        if not self._confirm(f"Are you sure you want to remove section {name!r} and all its items?"):
            return []
        return list(self._execute(RemoveSection(name)).removed)

    def add_column(self, column_id: str, default: Any = 0) -> tuple[str, ...]:
        self._execute(AddColumn(column_id, default))
        return self.columns

    def remove_column(self, column_id: str) -> bool:
        if not self._confirm(f"Are you sure you want to remove column {column_id!r}?"):
            return False
        self._execute(RemoveColumn(column_id))
        return True

    # -------------------------------------------------------------------------
    # Financial summary
    # -------------------------------------------------------------------------

    def apply_budget_totals(self, annual_total: Any, monthly_total: Any) -> list[RecordBase]:
        """
        Write budget totals into the summary's expense rows and recompute profits.

        Returns the records whose amount changed.

        Raises:
            ValidationError: Not a financial summary, or a total is not a number
        """
        result = self._execute(ApplyBudgetTotals(annual_total, monthly_total))
        return [self._records[self.index_of(record_id)] for _, record_id in result.changes]

    # -------------------------------------------------------------------------
    # Editing state (UI helpers)
    # -------------------------------------------------------------------------

    def start_editing(self, record_index: int, field: str) -> bool:
        """Mark a cell as being edited. Calculated and managed columns are refused."""
        try:
            check_index(self._records, record_index)
            wire_name, _ = self.validator.resolve_editable(self.kind, field, self.columns)
        except ValidationError:
            return False
        self.editing_cell = (record_index, wire_name)
        return True

    def stop_editing(self) -> None:
        self.editing_cell = None

    # -------------------------------------------------------------------------
    # Sync and bootstrap hooks
    # -------------------------------------------------------------------------

    def reconcile_id(self, temp_id: str, canonical_id: str) -> bool:
        """Swap a temporary id for the backend's. Rewrites at most one record."""
        index = self.index_of(temp_id)
        if index is None:
            return False
        if self.index_of(canonical_id) is not None:
            logger.warning(
                "reconcile_conflict",
                resource=self.kind.resource,
                temp_id=temp_id,
                canonical_id=canonical_id,
            )
            return False

        records = list(self._records)
        records[index] = records[index].model_copy(update={"id": canonical_id})
        self._records = records
        self._schedule_persist()
        self._publish(RECORDS_CHANGED, {"reason": "reconcile", "temp_id": temp_id, "id": canonical_id})
        return True

    def replace_all(
        self,
        records: Iterable[Union[RecordBase, Mapping[str, Any]]],
        persist: bool = True,
        columns: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Replace the whole collection (bootstrap, import).

        Rows are coerced leniently and re-derived; rows that cannot be
        read at all, and later rows repeating an id, are skipped.
        Returns the number of records kept.
        """
        ctx = self.context
        loaded: list[RecordBase] = []
        seen: set[str] = set()

        for raw in records:
            data = raw.to_wire() if isinstance(raw, RecordBase) else dict(raw)
            if not data.get("id") and data.get("_id") in (None, ""):
                data["id"] = new_temp_id()
            try:
                record = build_record(ctx, data, derive=self.kind.derive_on_load)
            except ModelValidationError as e:
                logger.warning("record_skipped", resource=self.kind.resource, error=str(e))
                continue
            if record.id in seen:
                logger.warning("duplicate_id_skipped", resource=self.kind.resource, record_id=record.id)
                continue
            seen.add(record.id)
            loaded.append(record)

        self._records = renumber(self.kind, loaded)
        if self.kind.allows_dynamic_columns:
            self.columns = self._discover_columns(columns)

        if persist:
            self._persist.cancel(self.kind.storage_key)
            self._write_cache(self.kind.storage_key, None)
        self._publish(RECORDS_CHANGED, {"reason": "replace", "count": len(self._records)})
        return len(self._records)

    def set_loading(self, loading: bool) -> None:
        if loading != self.loading:
            self.loading = loading
            self._publish(LOADING_CHANGED, {"loading": loading})

    def set_error(self, error: Optional[str]) -> None:
        if error != self.error:
            self.error = error
            self._publish(ERROR_CHANGED, {"error": error})

    def subscribe(self, callback: Callable, event: str = ALL_EVENTS) -> Callable[[], None]:
        """Observe store changes. Returns an unsubscribe function."""
        return self.events.subscribe(callback, event)

    async def flush(self) -> None:
        """Write the local cache now instead of waiting for the debounce window."""
        await self._persist.flush()

    async def aclose(self) -> None:
        await self.flush()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _execute(self, command) -> CommandResult:
        try:
            result = command.apply(self._records, self.context)
        except ValidationError as e:
            self._audit.log_edit_rejected(self.kind.resource, e.field or "", e.value, str(e))
            raise

        self._records = result.records
        if result.columns is not None:
            self.columns = result.columns

        self._schedule_persist()
        if self._sync is not None:
            for operation, record_id in result.changes:
                payload = None
                if operation != SyncOperation.DELETE:
                    payload = self._records[self.index_of(record_id)].to_wire()
                self._sync.enqueue(operation, record_id, payload)

        self._publish(RECORDS_CHANGED, {"reason": type(command).__name__})
        return result

    def _schedule_persist(self) -> None:
        if self.local_store is not None:
            self._persist.schedule(self.kind.storage_key, None)

    def _write_cache(self, key: str, _payload: Any) -> None:
        if self.local_store is None:
            return
        if not self.local_store.save(key, self.to_wire()):
            self._audit.log_cache_write_failed(key, "local cache write failed")
        if self.kind.allows_dynamic_columns:
            self.local_store.save(self.columns_key, [{"id": column} for column in self.columns])

    @property
    def columns_key(self) -> str:
        return f"{self.kind.name.value}Columns"

    def _discover_columns(self, declared: Optional[Iterable[str]]) -> tuple[str, ...]:
        """Declared columns first, then any extra numeric field found on the records."""
        columns = list(declared if declared is not None else self.columns)
        for record in self._records:
            for name, value in (record.model_extra or {}).items():
                if name in columns or name.startswith("_") or self.kind.resolve_field(name):
                    continue
                try:
                    if parse_number(value) is not None:
                        columns.append(name)
                except ValueError:
                    continue
        return tuple(columns)

    def _publish(self, name: str, payload: dict) -> None:
        self.events.publish(name, {"resource": self.kind.resource, **payload})
