"""Per file type, per partition digest of a submission.

A digest keeps only keys and line numbers, never file contents. Rows are
stored in flat integer arrays (row -> file id, row -> line number) and every
key spec of the file type gets a KeyIndex mapping rows to dense key ids.
After freeze() the digest is read-only and may be shared across threads.
"""

from __future__ import annotations

import logging
from array import array

import numpy as np

from constants import SubmissionType
from dictionary.model import KeySpec
from digest.keys import KeyIndex

log = logging.getLogger(__name__)


class FileDigest:
    """Digest of every file of one file type within one partition.

    Args:
        file_type: File type name
        partition: constants.Partition value
        specs: Key specs to index; the first one is the primary key
    """

    def __init__(self, file_type: str, partition: str, specs: tuple[KeySpec, ...]):
        self.file_type = file_type
        self.partition = partition
        self.primary_spec = specs[0]
        self.indices: dict[KeySpec, KeyIndex] = {spec: KeyIndex(spec) for spec in specs}
        self.file_names: list[str] = []
        self.submission_types: list[str] = []
        self._row_files = array("i")
        self._row_lines = array("q")
        self.row_files: np.ndarray | None = None
        self.row_lines: np.ndarray | None = None
        self.checked_rows: np.ndarray | None = None
        self._bucket_rows: np.ndarray | None = None
        self._bucket_offsets: np.ndarray | None = None
        # Structural row defects found while building (rows left out)
        self.defects: list = []
        self.frozen = False

    def add_file(self, file_name: str, submission_type: str) -> int:
        if self.frozen:
            raise RuntimeError(f"Digest {self.file_type}/{self.partition} is frozen")
        self.file_names.append(file_name)
        self.submission_types.append(submission_type)
        return len(self.file_names) - 1

    def add_row(self, file_id: int, line_number: int, keys: dict[KeySpec, tuple | None]) -> None:
        """Append one row; keys must hold a complete primary key."""
        self._row_files.append(file_id)
        self._row_lines.append(line_number)
        for spec, index in self.indices.items():
            index.add_row(keys.get(spec))

    def freeze(self) -> "FileDigest":
        """Finalize the arrays and the primary key buckets."""
        if self.frozen:
            return self
        self.row_files = np.array(self._row_files, dtype=np.int32)
        self.row_lines = np.array(self._row_lines, dtype=np.int64)
        self._row_files = array("i")
        self._row_lines = array("q")
        for index in self.indices.values():
            index.freeze()

        checked_files = np.array(
            [SubmissionType.is_checked(t) for t in self.submission_types], dtype=bool
        )
        if len(self.row_files):
            self.checked_rows = checked_files[self.row_files]
        else:
            self.checked_rows = np.zeros(0, dtype=bool)

        # Rows grouped by primary key id, in row order within a key
        pk_ids = self.primary_index.row_key_ids
        self._bucket_rows = np.argsort(pk_ids, kind="stable")
        counts = np.bincount(pk_ids, minlength=len(self.primary_index))
        self._bucket_offsets = np.concatenate(([0], np.cumsum(counts))).astype(np.int64)
        self.frozen = True
        log.debug(
            "Froze digest %s/%s: %d file(s), %d row(s), %d primary key(s)",
            self.file_type, self.partition, len(self.file_names),
            self.row_count, len(self.primary_index),
        )
        return self

    @property
    def row_count(self) -> int:
        if self.row_lines is not None:
            return len(self.row_lines)
        return len(self._row_lines)

    @property
    def primary_index(self) -> KeyIndex:
        return self.indices[self.primary_spec]

    def index(self, spec: KeySpec) -> KeyIndex:
        return self.indices[spec]

    def has_checked_rows(self) -> bool:
        return bool(self.checked_rows.any())

    def row_location(self, row: int) -> tuple[str, int]:
        """(file name, line number) of a row."""
        return self.file_names[int(self.row_files[row])], int(self.row_lines[row])

    def key_counts(self) -> np.ndarray:
        """Number of rows per primary key id."""
        return np.diff(self._bucket_offsets)

    def bucket_rows(self, key_id: int) -> np.ndarray:
        start, end = self._bucket_offsets[key_id], self._bucket_offsets[key_id + 1]
        return self._bucket_rows[start:end]

    def rows_for(self, key: tuple) -> list[tuple[str, int]]:
        """Every (file name, line number) holding this primary key, in row order."""
        key_id = self.primary_index.id_of(key)
        if key_id is None:
            return []
        return [self.row_location(r) for r in self.bucket_rows(key_id)]

    def lines_for(self, key: tuple) -> list[int]:
        """Line numbers holding this primary key (duplicates kept)."""
        return [line for _, line in self.rows_for(key)]

    def first_rows(self, spec: KeySpec) -> np.ndarray:
        """First row index per key id of spec.

        Key ids are assigned in first-seen order, so the result is increasing.
        """
        ids = self.indices[spec].row_key_ids
        valid = np.flatnonzero(ids >= 0)
        _, first = np.unique(ids[valid], return_index=True)
        return valid[first]

    def first_location(self, spec: KeySpec, key: tuple) -> tuple[str, int] | None:
        """Location of the first row whose key for spec equals key."""
        key_id = self.indices[spec].id_of(key)
        if key_id is None:
            return None
        return self.row_location(int(self.first_rows(spec)[key_id]))

    def __repr__(self) -> str:
        return (
            f"<FileDigest(type={self.file_type}, partition={self.partition}, "
            f"files={len(self.file_names)}, rows={self.row_count})>"
        )
