"""Foreign key validation between two file types.

The forward (primary) check verifies that every checked child row resolves
to a parent key in either partition. The reverse (secondary) check, for
bidirectional relations, verifies that every checked parent key is
referenced by at least one child row.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from constants import RELATION_ERROR_LINE_NUMBER, ErrorKind
from digest.keys import is_complete, project_key
from validators.coverage import child_coverage
from validators.row_error import RowError

if TYPE_CHECKING:
    from dictionary.model import KeyDictionary, Relation
    from digest.submission import SubmissionDigest

log = logging.getLogger(__name__)


def _resolver(relation: "Relation", submission: "SubmissionDigest"):
    """Return a predicate telling whether a child key resolves to a parent."""
    parents = submission.digests_for(relation.referenced_type)
    full_indices = [d.index(relation.referenced_spec) for d in parents]
    required = relation.referencing_spec.required_indices
    if relation.has_optionals and required:
        partial_indices = [d.index(relation.required_referenced_spec) for d in parents]
    else:
        partial_indices = []

    def resolves(key: tuple) -> bool:
        if is_complete(key):
            return any(key in index for index in full_indices)
        if not required:
            # Every position is optional and absent
            return True
        projected = project_key(key, required)
        return any(projected in index for index in partial_indices)

    return resolves


def validate_primary(
    relation: "Relation",
    submission: "SubmissionDigest",
    check_existing: bool = False,
) -> list[RowError]:
    """Report child rows whose foreign key matches no parent key.

    Rows of EXISTING files were accepted by a previous release and are only
    checked when check_existing is set (relation introduced by a dictionary
    change).

    Args:
        relation: Relation to check
        submission: Complete submission digest
        check_existing: Also check rows of EXISTING files

    Returns:
        PRIMARY_RELATION errors, in file and line order
    """
    resolves = _resolver(relation, submission)
    errors = []
    for child in submission.digests_for(relation.referencing_type):
        index = child.index(relation.referencing_spec)
        unresolved = index.key_mask(lambda key: not resolves(key))
        offending = index.rows_where(unresolved)
        if not check_existing:
            offending &= child.checked_rows

        for row in np.flatnonzero(offending):
            file_name, line_number = child.row_location(int(row))
            errors.append(
                RowError(
                    file_type=relation.referencing_type,
                    file_name=file_name,
                    line_number=line_number,
                    kind=ErrorKind.PRIMARY_RELATION,
                    key=index.keys[index.row_key_ids[row]],
                    field_names=relation.referencing_fields,
                    referenced_type=relation.referenced_type,
                    referenced_fields=relation.referenced_fields,
                )
            )

    if errors:
        log.info("Relation %s: %d unresolved row(s)", relation.name, len(errors))
    return errors


def validate_secondary(
    relation: "Relation",
    submission: "SubmissionDigest",
    optional_exempts_reverse: bool = True,
    check_existing: bool = False,
) -> list[RowError]:
    """Report parent keys referenced by no child row (bidirectional relations).

    The error is attached to the parent file where the key first appears,
    at the relation sentinel line number; errors are ordered by key.

    Returns:
        SECONDARY_RELATION errors
    """
    coverage = child_coverage(
        relation, submission.digests_for(relation.referencing_type), optional_exempts_reverse
    )

    orphans = {}
    for parent in submission.digests_for(relation.referenced_type):
        index = parent.index(relation.referenced_spec)
        first_rows = parent.first_rows(relation.referenced_spec)
        if check_existing:
            candidates = np.ones(len(index), dtype=bool)
        else:
            # Keys with at least one row in a checked file
            checked_ids = index.row_key_ids[parent.checked_rows]
            candidates = np.zeros(len(index), dtype=bool)
            candidates[checked_ids[checked_ids >= 0]] = True

        for key_id in np.flatnonzero(candidates):
            key = index.keys[key_id]
            if key in orphans or coverage.covers(key):
                continue
            file_name, _ = parent.row_location(int(first_rows[key_id]))
            orphans[key] = file_name

    errors = [
        RowError(
            file_type=relation.referenced_type,
            file_name=file_name,
            line_number=RELATION_ERROR_LINE_NUMBER,
            kind=ErrorKind.SECONDARY_RELATION,
            key=key,
            field_names=relation.referenced_fields,
            referenced_type=relation.referencing_type,
            referenced_fields=relation.referencing_fields,
        )
        for key, file_name in sorted(orphans.items())
    ]
    if errors:
        log.info("Relation %s: %d unreferenced parent key(s)", relation.name, len(errors))
    return errors


def validate_relation(
    relation: "Relation",
    submission: "SubmissionDigest",
    dictionary: "KeyDictionary",
    check_existing: bool = False,
) -> list[RowError]:
    """Forward check, plus the reverse check when the relation is bidirectional."""
    errors = validate_primary(relation, submission, check_existing)
    if relation.bidirectional:
        errors.extend(
            validate_secondary(
                relation, submission, dictionary.optional_exempts_reverse, check_existing
            )
        )
    return errors
