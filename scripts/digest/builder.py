"""Digest builder: streams submission files once into FileDigests.

Row defects (a declared key field missing from the row, or an incomplete
primary key) leave the row out of the digest and are recorded as RowErrors
on the digest. Read failures are fatal and propagate to the caller.
"""

from __future__ import annotations

import logging
from typing import Iterable

from constants import ErrorKind, Partition
from dictionary.model import KeyDictionary
from digest.file_digest import FileDigest
from digest.keys import extract_key
from digest.submission import Row, SubmissionFile
from utils import key_value
from validators.base import SubmissionReadError, check_cancelled
from validators.row_error import RowError

log = logging.getLogger(__name__)


class DigestBuilder:
    """Builds digests for the file types of one dictionary.

    Args:
        dictionary: Compiled key dictionary
        cancel_event: Optional threading.Event checked between files
    """

    def __init__(self, dictionary: KeyDictionary, cancel_event=None):
        self.dictionary = dictionary
        self.cancel_event = cancel_event

    def new_digest(self, file_type: str, partition: str) -> FileDigest:
        return FileDigest(file_type, partition, self.dictionary.key_specs(file_type))

    def build(
        self,
        file_type: str,
        submission_type: str,
        rows: Iterable[Row],
        file_name: str | None = None,
        digest: FileDigest | None = None,
    ) -> FileDigest:
        """Stream one file into a digest.

        Args:
            file_type: Dictionary file type name
            submission_type: constants.SubmissionType of the file
            rows: (line number, field -> value) pairs
            file_name: Name used in reports (defaults to the file type)
            digest: Digest to append to; a new one is created when omitted

        Returns:
            The digest the rows were added to (not frozen)

        Raises:
            SubmissionReadError: If the underlying file cannot be read
        """
        file_name = file_name or file_type
        if digest is None:
            digest = self.new_digest(file_type, Partition.of(submission_type))

        specs = tuple(digest.indices)
        primary_spec = digest.primary_spec
        missing_codes = self.dictionary.missing_codes
        declared = []
        for spec in specs:
            for field_name in spec.fields:
                if field_name not in declared:
                    declared.append(field_name)

        file_id = digest.add_file(file_name, submission_type)
        rows_read = 0
        rows_skipped = 0
        try:
            for line_number, row in rows:
                rows_read += 1
                missing = [f for f in declared if f not in row]
                if missing:
                    digest.defects.append(
                        RowError(
                            file_type=file_type,
                            file_name=file_name,
                            line_number=line_number,
                            kind=ErrorKind.STRUCTURAL,
                            key=(),
                            field_names=tuple(missing),
                        )
                    )
                    rows_skipped += 1
                    continue

                primary_key = extract_key(row, primary_spec, missing_codes)
                if primary_key is None:
                    digest.defects.append(
                        RowError(
                            file_type=file_type,
                            file_name=file_name,
                            line_number=line_number,
                            kind=ErrorKind.PRIMARY_KEY_INCOMPLETE,
                            key=tuple(
                                key_value(row[f], missing_codes) for f in primary_spec.fields
                            ),
                            field_names=primary_spec.fields,
                        )
                    )
                    rows_skipped += 1
                    continue

                keys = {primary_spec: primary_key}
                for spec in specs[1:]:
                    keys[spec] = extract_key(row, spec, missing_codes)
                digest.add_row(file_id, line_number, keys)
        except OSError as e:
            raise SubmissionReadError(f"Failed to read {file_name}: {e}") from e

        log.info(
            "Digested %s (%s, %s): %d row(s) read, %d skipped",
            file_name, file_type, submission_type, rows_read, rows_skipped,
        )
        return digest

    def build_partition(
        self, file_type: str, partition: str, files: list[SubmissionFile]
    ) -> FileDigest:
        """Build and freeze the digest of every file of a type in one partition.

        Raises:
            SubmissionReadError: If a file cannot be read
            ValidationCancelled: If the run is cancelled between files
        """
        digest = self.new_digest(file_type, partition)
        for submission_file in files:
            check_cancelled(self.cancel_event)
            self.build(
                file_type,
                submission_file.submission_type,
                submission_file.rows,
                file_name=submission_file.file_name,
                digest=digest,
            )
        return digest.freeze()
