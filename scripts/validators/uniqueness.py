"""Primary key uniqueness across both partitions of a file type."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from constants import ErrorKind
from validators.row_error import RowError

if TYPE_CHECKING:
    from digest.submission import SubmissionDigest

log = logging.getLogger(__name__)


def validate_uniqueness(file_type: str, submission: "SubmissionDigest") -> list[RowError]:
    """Report every checked row whose primary key occurs more than once.

    Occurrences are counted over existing and incremental data together, so
    new data re-using an accepted key is a violation. Rows of EXISTING files
    are never reported themselves, but they count as occurrences.

    Returns:
        UNIQUENESS errors, one per offending checked row
    """
    digests = submission.digests_for(file_type)
    if not digests:
        return []

    # Keys seen more than once within a partition or in both partitions
    duplicated = []
    seen = set()
    for digest in digests:
        index = digest.primary_index
        counts = digest.key_counts()
        for key_id in np.flatnonzero(counts > 1):
            key = index.keys[key_id]
            if key not in seen:
                seen.add(key)
                duplicated.append(key)
    if len(digests) == 2:
        existing, incremental = digests
        for key in incremental.primary_index.keys:
            if key in existing.primary_index and key not in seen:
                seen.add(key)
                duplicated.append(key)

    errors = []
    for key in duplicated:
        occurrences = []
        for digest in digests:
            key_id = digest.primary_index.id_of(key)
            if key_id is None:
                continue
            for row in digest.bucket_rows(key_id):
                occurrences.append(
                    (digest.row_location(int(row)), bool(digest.checked_rows[row]))
                )

        for (file_name, line_number), checked in occurrences:
            if not checked:
                continue
            others = tuple(
                location for location, _ in occurrences
                if location != (file_name, line_number)
            )
            errors.append(
                RowError(
                    file_type=file_type,
                    file_name=file_name,
                    line_number=line_number,
                    kind=ErrorKind.UNIQUENESS,
                    key=key,
                    field_names=digests[0].primary_spec.fields,
                    other_lines=others,
                )
            )

    if errors:
        log.info(
            "Uniqueness of %s: %d duplicated key(s), %d offending row(s)",
            file_type, len(duplicated), len(errors),
        )
    return errors
