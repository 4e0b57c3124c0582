"""
Store commands.

Every change to a collection is a command. apply() is synchronous and
pure: it validates first, raises ValidationError before touching
anything, and returns the new record list plus the remote operations
the change implies. The store swaps the list in and does the I/O.
"""

from typing import Any, Iterable, Mapping, NamedTuple, Optional
from uuid import uuid4

from finsync.engine.derived import SUMMARY_INPUT_ROWS, DerivedFieldEngine, summary_profits
from finsync.models.kinds import ANNUAL_EXPENSES_CATEGORY, MONTHLY_EXPENSES_CATEGORY, RecordKind
from finsync.models.records import TEMP_ID_PREFIX, RecordBase, SyncOperation
from finsync.validation import FieldValidator, ValidationError

DEFAULT_SECTION = "General"


def new_temp_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid4().hex}"


class CommandContext(NamedTuple):
    kind: RecordKind
    engine: DerivedFieldEngine
    validator: FieldValidator
    columns: tuple[str, ...] = ()


class CommandResult(NamedTuple):
    records: list[RecordBase]
    changes: list[tuple[SyncOperation, str]]
    removed: tuple[RecordBase, ...] = ()
    columns: Optional[tuple[str, ...]] = None


# =============================================================================
# HELPERS
# =============================================================================

def build_record(ctx: CommandContext, data: Mapping[str, Any], derive: bool = True) -> RecordBase:
    """Validate a wire dict into the kind's model, recomputing derived fields."""
    data = dict(data)
    if derive:
        data.update(ctx.engine.derive(ctx.kind.name.value, data))
    return ctx.kind.model.model_validate(data)


def section_of(kind: RecordKind, record: RecordBase) -> Optional[str]:
    if kind.section_field is None:
        return None
    return getattr(record, kind.section_field) or DEFAULT_SECTION


def renumber(kind: RecordKind, records: list[RecordBase]) -> list[RecordBase]:
    """Contiguous 1-based sequence per section (budget) or per collection."""
    if kind.sequence_field is None:
        return records
    attribute = kind.attribute_for(kind.sequence_field)
    counters: dict[Optional[str], int] = {}
    result = []
    for record in records:
        section = section_of(kind, record)
        counters[section] = counters.get(section, 0) + 1
        if getattr(record, attribute) != counters[section]:
            record = record.model_copy(update={attribute: counters[section]})
        result.append(record)
    return result


def check_index(records: list[RecordBase], index: int) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(records):
        raise ValidationError(f"No record at index {index}", field="index", value=index)


def recalculate_profits(
    records: list[RecordBase],
) -> tuple[list[RecordBase], list[tuple[SyncOperation, str]]]:
    """
    Rewrite the financial summary profit rows from the expense rows.

    Returns the new list and an update for each profit row whose amount
    changed. A collection without all four expense rows is left as is.
    """
    if len(records) <= max(SUMMARY_INPUT_ROWS):
        return records, []
    profits = summary_profits(*(records[i].amount for i in SUMMARY_INPUT_ROWS))

    updated = list(records)
    changes = []
    for position, amount in profits.items():
        if position >= len(updated) or updated[position].amount == amount:
            continue
        updated[position] = updated[position].model_copy(update={"amount": amount})
        changes.append((SyncOperation.UPDATE, updated[position].id))
    return updated, changes


# =============================================================================
# RECORD COMMANDS
# =============================================================================

class MutateField:
    """Write one validated value and re-derive."""

    def __init__(self, index: int, field: str, raw_value: Any):
        self.index = index
        self.field = field
        self.raw_value = raw_value

    def apply(self, records: list[RecordBase], ctx: CommandContext) -> CommandResult:
        check_index(records, self.index)
        wire_name, value = ctx.validator.validate_field(ctx.kind, self.field, self.raw_value, ctx.columns)
        if wire_name == ctx.kind.section_field and not value:
            value = DEFAULT_SECTION

        record = records[self.index]
        data = {**record.to_wire(), wire_name: value}
        updated = build_record(ctx, data, derive=ctx.kind.triggers_derivation(wire_name))

        new_records = list(records)
        new_records[self.index] = updated
        if wire_name == ctx.kind.section_field:
            new_records = renumber(ctx.kind, new_records)

        changes = [(SyncOperation.UPDATE, updated.id)]
        if ctx.kind.derives_profit_rows and wire_name == "amount" and self.index in SUMMARY_INPUT_ROWS:
            new_records, profit_changes = recalculate_profits(new_records)
            changes += profit_changes
        return CommandResult(new_records, changes)


class AddRecord:
    """Append a new record built from kind defaults plus caller fields."""

    def __init__(self, partial: Optional[Mapping[str, Any]] = None, section: Optional[str] = None):
        self.partial = dict(partial or {})
        self.section = section

    def apply(self, records: list[RecordBase], ctx: CommandContext) -> CommandResult:
        kind = ctx.kind
        data = ctx.validator.validate_partial(kind, self.partial, ctx.columns)

        if "id" not in data and data.get("_id") not in (None, ""):
            data["id"] = str(data["_id"]).strip()
        data.pop("_id", None)
        record_id = data.get("id") or new_temp_id()
        if any(existing.id == record_id for existing in records):
            raise ValidationError(f"Duplicate id: {record_id}", field="id", value=record_id)
        data["id"] = record_id

        if kind.section_field is not None:
            if self.section is not None:
                data[kind.section_field] = ctx.validator.clean_text(kind.section_field, self.section)
            if not data.get(kind.section_field):
                data[kind.section_field] = DEFAULT_SECTION
        for column in ctx.columns:
            data.setdefault(column, 0.0)

        if kind.derive_triggers is None:
            derive = True
        else:
            # Keep a caller-supplied derived figure (e.g. imported annual revenue)
            derive = not any(name in data for name in kind.derived_fields)
        record = build_record(ctx, data, derive=derive)

        new_records = list(records)
        new_records.insert(self._position(kind, records, record), record)
        return CommandResult(renumber(kind, new_records), [(SyncOperation.CREATE, record.id)])

    @staticmethod
    def _position(kind: RecordKind, records: list[RecordBase], record: RecordBase) -> int:
        """After the last record of the same section, else at the end."""
        section = section_of(kind, record)
        if section is None:
            return len(records)
        position = len(records)
        for index, existing in enumerate(records):
            if section_of(kind, existing) == section:
                position = index + 1
        return position


class RemoveRecord:
    def __init__(self, index: int):
        self.index = index

    def apply(self, records: list[RecordBase], ctx: CommandContext) -> CommandResult:
        check_index(records, self.index)
        removed = records[self.index]
        remaining = records[:self.index] + records[self.index + 1:]
        return CommandResult(
            renumber(ctx.kind, remaining),
            [(SyncOperation.DELETE, removed.id)],
            removed=(removed,),
        )


# =============================================================================
# BUDGET COMMANDS
# =============================================================================

def _require_sections(kind: RecordKind) -> None:
    if kind.section_field is None:
        raise ValidationError(f"{kind.name.value} records have no sections", field="section")


def _require_dynamic_columns(kind: RecordKind) -> None:
    if not kind.allows_dynamic_columns:
        raise ValidationError(f"{kind.name.value} does not support custom columns", field="column")


class RemoveSection:
    """Drop every record of one section."""

    def __init__(self, name: str):
        self.name = name

    def apply(self, records: list[RecordBase], ctx: CommandContext) -> CommandResult:
        _require_sections(ctx.kind)
        removed = [r for r in records if section_of(ctx.kind, r) == self.name]
        if not removed:
            raise ValidationError(f"No section named {self.name!r}", field="section", value=self.name)
        remaining = [r for r in records if section_of(ctx.kind, r) != self.name]
        return CommandResult(
            renumber(ctx.kind, remaining),
            [(SyncOperation.DELETE, r.id) for r in removed],
            removed=tuple(removed),
        )


class AddColumn:
    """Add a numeric column to every record."""

    def __init__(self, column_id: str, default: Any = 0):
        self.column_id = column_id
        self.default = default

    def apply(self, records: list[RecordBase], ctx: CommandContext) -> CommandResult:
        _require_dynamic_columns(ctx.kind)
        column = FieldValidator.clean_text("column", self.column_id)
        if not column:
            raise ValidationError("Column id must not be blank", field="column", value=self.column_id)
        if column in ctx.columns or ctx.kind.resolve_field(column) is not None or column == "_id":
            raise ValidationError(f"Column {column!r} already exists", field="column", value=column)
        value = FieldValidator.clean_number(column, self.default)

        new_records = [
            build_record(ctx, {**r.to_wire(), column: value}, derive=False) for r in records
        ]
        return CommandResult(
            new_records,
            [(SyncOperation.UPDATE, r.id) for r in new_records],
            columns=ctx.columns + (column,),
        )


class RemoveColumn:
    """Remove a user-added column. Core columns are protected."""

    def __init__(self, column_id: str):
        self.column_id = column_id

    def apply(self, records: list[RecordBase], ctx: CommandContext) -> CommandResult:
        _require_dynamic_columns(ctx.kind)
        if ctx.kind.resolve_field(self.column_id) is not None:
            raise ValidationError(
                f"{self.column_id} is a core column and cannot be removed",
                field="column",
                value=self.column_id,
            )
        if self.column_id not in ctx.columns:
            raise ValidationError(f"No column named {self.column_id!r}", field="column", value=self.column_id)

        new_records = []
        for record in records:
            data = record.to_wire()
            data.pop(self.column_id, None)
            new_records.append(build_record(ctx, data, derive=False))
        return CommandResult(
            new_records,
            [(SyncOperation.UPDATE, r.id) for r in new_records],
            columns=tuple(c for c in ctx.columns if c != self.column_id),
        )


# =============================================================================
# FINANCIAL SUMMARY COMMANDS
# =============================================================================

class ApplyBudgetTotals:
    """Copy the budget's annual and monthly totals into the summary, then recompute profits."""

    def __init__(self, annual_total: Any, monthly_total: Any):
        self.annual_total = annual_total
        self.monthly_total = monthly_total

    def apply(self, records: list[RecordBase], ctx: CommandContext) -> CommandResult:
        if not ctx.kind.derives_profit_rows:
            raise ValidationError(f"{ctx.kind.name.value} does not take budget totals", field="amount")
        targets = {
            ANNUAL_EXPENSES_CATEGORY: FieldValidator.clean_number("amount", self.annual_total),
            MONTHLY_EXPENSES_CATEGORY: FieldValidator.clean_number("amount", self.monthly_total),
        }

        new_records = list(records)
        changes = []
        for category, amount in targets.items():
            index = next((i for i, r in enumerate(new_records) if r.category == category), None)
            if index is None or new_records[index].amount == amount:
                continue
            new_records[index] = new_records[index].model_copy(update={"amount": amount})
            changes.append((SyncOperation.UPDATE, new_records[index].id))

        new_records, profit_changes = recalculate_profits(new_records)
        return CommandResult(new_records, changes + profit_changes)


def sections_in_order(kind: RecordKind, records: Iterable[RecordBase]) -> list[str]:
    """Section names in first-appearance order."""
    seen: list[str] = []
    for record in records:
        section = section_of(kind, record)
        if section is not None and section not in seen:
            seen.append(section)
    return seen
