"""Reverse coverage: which parent keys are referenced by child rows."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from digest.keys import is_complete, project_key

if TYPE_CHECKING:
    from dictionary.model import Relation
    from digest.file_digest import FileDigest


class Coverage:
    """Parent keys (in referenced field order) matched by at least one child row.

    Child keys with a not-applicable optional component are kept projected
    onto the required positions and cover every parent key with the same
    projection.
    """

    def __init__(self, required_indices: tuple[int, ...]):
        self.required_indices = required_indices
        self.full: set[tuple] = set()
        self.partial: set[tuple] = set()

    def add(self, key: tuple) -> None:
        if is_complete(key):
            self.full.add(key)
        elif self.required_indices:
            self.partial.add(project_key(key, self.required_indices))

    def covers(self, parent_key: tuple) -> bool:
        if parent_key in self.full:
            return True
        return bool(self.partial) and (
            project_key(parent_key, self.required_indices) in self.partial
        )

    def __len__(self) -> int:
        return len(self.full) + len(self.partial)


def add_row_keys(
    coverage: Coverage,
    relation: "Relation",
    digest: "FileDigest",
    rows: np.ndarray | None,
    optional_exempts_reverse: bool,
) -> None:
    """Add the referencing keys of selected child rows to a coverage.

    Args:
        coverage: Coverage in the relation's referenced key space
        relation: Relation whose referencing side is read
        digest: Digest of the relation's referencing type
        rows: Boolean row mask, or None for every row
        optional_exempts_reverse: Leave out keys with a not-applicable component
    """
    index = digest.index(relation.referencing_spec)
    ids = index.row_key_ids if rows is None else index.row_key_ids[rows]
    for key_id in np.unique(ids[ids >= 0]):
        key = index.keys[key_id]
        if optional_exempts_reverse and not is_complete(key):
            continue
        coverage.add(key)


def child_coverage(relation: "Relation", digests: list["FileDigest"], optional_exempts_reverse: bool) -> Coverage:
    """Coverage of the referenced type by every row of the referencing digests."""
    coverage = Coverage(relation.referencing_spec.required_indices)
    for digest in digests:
        add_row_keys(coverage, relation, digest, None, optional_exempts_reverse)
    return coverage
