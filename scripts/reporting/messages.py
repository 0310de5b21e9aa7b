"""Human-readable messages and report records for key validation errors."""

from __future__ import annotations

from constants import ErrorKind
from utils import format_key, qualified_fields
from validators.row_error import RowError


def _other_lines(error: RowError) -> str:
    return ", ".join(f"{name}:{line}" for name, line in error.other_lines)


def render_message(error: RowError) -> str:
    """Render the report message of an error.

    Examples:
        "invalid value(s) (DO3) for field(s) specimen.[donor_id]. Expected to
        match value(s) in: donor.[donor_id]"
    """
    values = format_key(error.key)
    fields = qualified_fields(error.file_type, error.field_names)
    other = None
    if error.referenced_type is not None:
        other = qualified_fields(error.referenced_type, error.referenced_fields)

    if error.kind == ErrorKind.PRIMARY_RELATION:
        return (
            f"invalid value(s) ({values}) for field(s) {fields}. "
            f"Expected to match value(s) in: {other}"
        )
    if error.kind == ErrorKind.SECONDARY_RELATION:
        return f"no corresponding values in {other} for value(s) ({values}) in {fields}"
    if error.kind == ErrorKind.UNIQUENESS:
        return (
            f"invalid set of values ({values}) for fields {fields}. "
            f"Expected to be unique (also found at {_other_lines(error)})"
        )
    if error.kind == ErrorKind.SIMPLE_SURJECTION:
        return f"value(s) ({values}) in {fields} are not referenced by any row of {other}"
    if error.kind == ErrorKind.COMPLEX_SURJECTION:
        return (
            f"value(s) ({values}) in {fields} are not covered by any row of {other} "
            f"through the intermediate file types"
        )
    if error.kind == ErrorKind.PRIMARY_KEY_INCOMPLETE:
        return (
            f"value missing for required primary key field(s) {fields} ({values}); "
            f"row will be ignored by the rest of key validation"
        )
    if error.kind == ErrorKind.STRUCTURAL:
        return (
            f"structurally invalid row: missing declared field(s) {fields} "
            f"(row will be ignored by the rest of key validation)"
        )
    return f"{error.kind} for value(s) ({values}) in {fields}"


def to_record(error: RowError) -> dict:
    """Flatten an error into a report record (JSON-serializable)."""
    params = {}
    if error.referenced_type is not None:
        params["other_file_type"] = error.referenced_type
        params["other_fields"] = list(error.referenced_fields)
    if error.other_lines:
        params["other_lines"] = [
            {"file_name": name, "line_number": line} for name, line in error.other_lines
        ]
    return {
        "file_type": error.file_type,
        "file_name": error.file_name,
        "line_number": error.line_number,
        "type": error.kind,
        "field_names": list(error.field_names),
        "value": list(error.key),
        "params": params,
        "message": render_message(error),
    }
