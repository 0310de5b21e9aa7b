"""Structured key validation violations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RowError:
    """One violation found in a submission.

    File-level violations (reverse relation and surjection gaps) carry a
    synthetic non-positive line number.

    Attributes:
        file_type: File type the violation is attached to
        file_name: Submission file name
        line_number: 1-based line number, or a sentinel for file-level errors
        kind: One of constants.ErrorKind
        key: Offending key values (None for a not-applicable component)
        field_names: Fields the key values belong to
        referenced_type: Other side of the violated rule, if any
        referenced_fields: Fields on the other side of the violated rule
        other_lines: Other (file name, line number) occurrences, for uniqueness
    """

    file_type: str
    file_name: str
    line_number: int
    kind: str
    key: tuple[str | None, ...]
    field_names: tuple[str, ...] = ()
    referenced_type: str | None = None
    referenced_fields: tuple[str, ...] = ()
    other_lines: tuple[tuple[str, int], ...] = ()

    @property
    def identity(self) -> tuple:
        """Deduplication identity: the same violation found twice is one error."""
        return (self.file_type, self.file_name, self.line_number, self.kind, self.key)
