"""
Field Validation

DESIGN DECISION: Every user edit is validated before any state changes.

RULES BY COLUMN ROLE:
- numeric: empty becomes 0, anything else must parse as a finite number
  and is rounded to 2 decimals
- date: empty is allowed, anything else must be a real DD/MM/YYYY date;
  the string is kept exactly as entered
- text: trimmed; some columns must not be blank

Identity, sequence and derived columns are never user-writable.

IMPORTANT: Validation NEVER silently fixes bad input.
A rejected value raises ValidationError and the caller keeps its old state.
"""

from datetime import date
from typing import Any, Iterable, Mapping, Optional

from finsync.engine.dates import DateParser, format_date
from finsync.engine.numbers import parse_number, round2
from finsync.models.kinds import FieldRole, RecordKind


class ValidationError(ValueError):
    """A user-supplied value was rejected. State is unchanged."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class FieldValidator:
    """
    Validates single edits and whole partial records for one kind.

    Dynamic (user-added) columns are numeric and are passed in by the
    caller, since only the store knows which ones exist.
    """

    def __init__(self, date_parser: Optional[DateParser] = None):
        self.date_parser = date_parser or DateParser()

    # -------------------------------------------------------------------------
    # Single field edits
    # -------------------------------------------------------------------------

    def resolve_editable(
        self,
        kind: RecordKind,
        field: str,
        dynamic_columns: Iterable[str] = (),
    ) -> tuple[str, str]:
        """
        Map a field name to (wire_name, role), rejecting read-only columns.
        """
        dynamic = set(dynamic_columns)
        wire_name = kind.resolve_field(field)
        if wire_name is None:
            if field in dynamic:
                return field, FieldRole.NUMERIC
            raise ValidationError(f"Unknown field: {field}", field=field)

        role = kind.role_of(wire_name)
        if role == FieldRole.DERIVED:
            raise ValidationError(f"{wire_name} is calculated and cannot be edited", field=wire_name)
        if role in (FieldRole.IDENTITY, FieldRole.SEQUENCE):
            raise ValidationError(f"{wire_name} is managed automatically", field=wire_name)
        return wire_name, role

    def validate_field(
        self,
        kind: RecordKind,
        field: str,
        raw_value: Any,
        dynamic_columns: Iterable[str] = (),
    ) -> tuple[str, Any]:
        """Validate one edit; returns (wire_name, clean_value)."""
        wire_name, role = self.resolve_editable(kind, field, dynamic_columns)
        return wire_name, self.clean(kind, wire_name, role, raw_value)

    def clean(self, kind: RecordKind, wire_name: str, role: str, raw_value: Any) -> Any:
        if role == FieldRole.NUMERIC:
            return self.clean_number(wire_name, raw_value)
        if role == FieldRole.DATE:
            return self.clean_date(wire_name, raw_value)
        text = self.clean_text(wire_name, raw_value)
        if wire_name in kind.required_text_fields and not text:
            raise ValidationError(f"{wire_name} must not be blank", field=wire_name, value=raw_value)
        return text

    @staticmethod
    def clean_number(field: str, raw_value: Any) -> float:
        try:
            number = parse_number(raw_value)
        except (TypeError, ValueError):
            raise ValidationError(
                f"{field} must be a number",
                field=field,
                value=raw_value,
            ) from None
        if number is None:
            return 0.0
        return round2(number)

    def clean_date(self, field: str, raw_value: Any) -> str:
        if raw_value is None:
            return ""
        if isinstance(raw_value, date):
            return format_date(raw_value)
        if not isinstance(raw_value, str):
            raise ValidationError(f"{field} must be a DD/MM/YYYY date", field=field, value=raw_value)
        if not raw_value.strip():
            return ""
        if self.date_parser.parse(raw_value) is None:
            raise ValidationError(
                f"{field} is not a valid DD/MM/YYYY date",
                field=field,
                value=raw_value,
            )
        return raw_value

    @staticmethod
    def clean_text(field: str, raw_value: Any) -> str:
        if raw_value is None:
            return ""
        if isinstance(raw_value, (dict, list, tuple, set)):
            raise ValidationError(f"{field} must be text", field=field, value=raw_value)
        if isinstance(raw_value, float) and raw_value.is_integer():
            raw_value = int(raw_value)
        return str(raw_value).strip()

    # -------------------------------------------------------------------------
    # Whole records (add_record, file import)
    # -------------------------------------------------------------------------

    def validate_partial(
        self,
        kind: RecordKind,
        partial: Mapping[str, Any],
        dynamic_columns: Iterable[str] = (),
    ) -> dict[str, Any]:
        """
        Validate every supplied base field of a new record.

        Returns a wire-form dict. Identity is checked for shape only,
        sequence values are dropped (the store renumbers), derived and
        unknown columns pass through untouched.
        """
        dynamic = set(dynamic_columns)
        clean: dict[str, Any] = {}

        for name, raw_value in partial.items():
            wire_name = kind.resolve_field(name)
            if wire_name is None:
                if name in dynamic:
                    clean[name] = self.clean_number(name, raw_value)
                else:
                    clean[name] = raw_value
                continue

            role = kind.role_of(wire_name)
            if role == FieldRole.SEQUENCE:
                continue
            if role == FieldRole.IDENTITY:
                if raw_value is not None:
                    record_id = str(raw_value).strip()
                    if not record_id:
                        raise ValidationError("id must not be blank", field="id", value=raw_value)
                    clean["id"] = record_id
                continue
            if role == FieldRole.DERIVED:
                clean[wire_name] = raw_value
                continue
            clean[wire_name] = self.clean(kind, wire_name, role, raw_value)

        for required in kind.required_text_fields:
            if required in clean:
                continue
            default = kind.model.model_fields[kind.attribute_for(required)].default
            if not str(default or "").strip():
                raise ValidationError(f"{required} must not be blank", field=required)

        return clean

