"""Key model and dense-id key arena.

A key is a plain tuple of string values, one per field of a KeySpec, in
field order. A not-applicable component (absent value at an optional
position) is stored as None. Tuples are immutable and compare value-wise
and case-sensitively, which is exactly the key equality the validators need.
"""

from __future__ import annotations

from array import array
from typing import Iterable, Mapping

import numpy as np

from constants import DEFAULT_MISSING_CODES
from dictionary.model import KeySpec
from utils import key_value

NOT_APPLICABLE = None
NO_KEY = -1


class MissingFieldError(Exception):
    """Raised when a row does not carry a field declared by a key spec."""

    def __init__(self, fields: list[str]):
        super().__init__(f"missing declared field(s): {fields}")
        self.fields = fields


def extract_key(
    row: Mapping[str, str],
    spec: KeySpec,
    missing_codes: Iterable[str] = DEFAULT_MISSING_CODES,
) -> tuple[str | None, ...] | None:
    """Project a row onto a key spec.

    Args:
        row: Field name to raw value mapping
        spec: Fields to project, with optional positions
        missing_codes: Values treated as absent

    Returns:
        Key tuple, or None if a required position is absent

    Raises:
        MissingFieldError: If the row lacks one of the spec's fields
    """
    missing = [f for f in spec.fields if f not in row]
    if missing:
        raise MissingFieldError(missing)

    values = []
    for i, field_name in enumerate(spec.fields):
        value = key_value(row[field_name], missing_codes)
        if value is None and i not in spec.optional_indices:
            return None
        values.append(value)
    return tuple(values)


def is_complete(key: tuple[str | None, ...]) -> bool:
    return NOT_APPLICABLE not in key


def project_key(key: tuple, indices: Iterable[int]) -> tuple:
    return tuple(key[i] for i in indices)


class KeyIndex:
    """Dense-id arena of the keys of one spec within one file digest.

    Ids are assigned in first-seen order. Each digest row maps to the id of
    its key, or NO_KEY when the key was invalid for this spec.
    """

    def __init__(self, spec: KeySpec):
        self.spec = spec
        self.keys: list[tuple] = []
        self._ids: dict[tuple, int] = {}
        self._row_key_ids = array("q")
        self.row_key_ids: np.ndarray | None = None

    def add_row(self, key: tuple | None) -> int:
        if key is None:
            key_id = NO_KEY
        else:
            key_id = self._ids.get(key)
            if key_id is None:
                key_id = len(self.keys)
                self._ids[key] = key_id
                self.keys.append(key)
        self._row_key_ids.append(key_id)
        return key_id

    def freeze(self) -> None:
        self.row_key_ids = np.array(self._row_key_ids, dtype=np.int64)
        self._row_key_ids = array("q")

    def id_of(self, key: tuple) -> int | None:
        return self._ids.get(key)

    def __contains__(self, key: tuple) -> bool:
        return key in self._ids

    def __len__(self) -> int:
        return len(self.keys)

    def key_mask(self, predicate) -> np.ndarray:
        """Boolean array over key ids, True where predicate(key) holds."""
        return np.fromiter(
            (predicate(k) for k in self.keys), dtype=bool, count=len(self.keys)
        )

    def rows_where(self, key_mask: np.ndarray) -> np.ndarray:
        """Boolean array over rows, True where the row's key is selected by key_mask."""
        ids = self.row_key_ids
        selected = np.zeros(len(ids), dtype=bool)
        valid = ids >= 0
        if len(key_mask):
            selected[valid] = key_mask[ids[valid]]
        return selected
