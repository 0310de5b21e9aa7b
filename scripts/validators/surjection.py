"""Surjection validation: every parent key must be referenced by children.

Simple surjection looks at one relation. Complex surjection folds coverage
along a chain of relations from the leaf toward the root: the parent keys
covered at one hop become the child keys required at the next hop, so no
pairwise join of all hops is ever materialized.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

import numpy as np

from constants import (
    COMPLEX_SURJECTION_ERROR_LINE_NUMBER,
    SIMPLE_SURJECTION_ERROR_LINE_NUMBER,
    ErrorKind,
)
from validators.coverage import Coverage, add_row_keys, child_coverage
from validators.row_error import RowError

if TYPE_CHECKING:
    from dictionary.model import ComplexSurjection, KeyDictionary, KeySpec, Relation
    from digest.submission import SubmissionDigest

log = logging.getLogger(__name__)


def _first_seen(submission: "SubmissionDigest", file_type: str, spec: "KeySpec"):
    """Yield (key, file name, checked) for each distinct key in first-seen order.

    Existing data is visited before incremental data; checked is True when
    the key has a row in a checked file of any partition.
    """
    locations = {}
    for digest in submission.digests_for(file_type):
        index = digest.index(spec)
        first_rows = digest.first_rows(spec)
        checked_ids = index.row_key_ids[digest.checked_rows]
        checked = np.zeros(len(index), dtype=bool)
        checked[checked_ids[checked_ids >= 0]] = True
        for key_id, key in enumerate(index.keys):
            if key in locations:
                if checked[key_id]:
                    locations[key][1] = True
                continue
            file_name, _ = digest.row_location(int(first_rows[key_id]))
            locations[key] = [file_name, bool(checked[key_id])]
    for key, (file_name, checked) in locations.items():
        yield key, file_name, checked


def validate_simple(
    relation: "Relation",
    submission: "SubmissionDigest",
    dictionary: "KeyDictionary",
) -> list[RowError]:
    """Report parent keys that no child row references.

    Every parent key of either partition is checked. Errors go to the parent
    file type at the simple surjection sentinel line, in first-seen key order.

    Returns:
        SIMPLE_SURJECTION errors
    """
    coverage = child_coverage(
        relation,
        submission.digests_for(relation.referencing_type),
        dictionary.optional_exempts_reverse,
    )

    errors = []
    for key, file_name, _ in _first_seen(submission, relation.referenced_type, relation.referenced_spec):
        if coverage.covers(key):
            continue
        errors.append(
            RowError(
                file_type=relation.referenced_type,
                file_name=file_name,
                line_number=SIMPLE_SURJECTION_ERROR_LINE_NUMBER,
                kind=ErrorKind.SIMPLE_SURJECTION,
                key=key,
                field_names=relation.referenced_fields,
                referenced_type=relation.referencing_type,
                referenced_fields=relation.referencing_fields,
            )
        )

    if errors:
        log.info("Simple surjection %s: %d unreferenced key(s)", relation.name, len(errors))
    return errors


def _lift(
    hop: "Relation",
    below: "Relation",
    submission: "SubmissionDigest",
    covered: Coverage | None,
    seed_checked: bool,
    optional_exempts_reverse: bool,
) -> Coverage:
    """Map coverage one hop up the chain.

    Rows of the hop's child type are selected when their key on the lower
    hop's referenced fields is covered (and, with seed_checked, when they
    come from a checked file); the selected rows' keys on the hop's
    referencing fields form the coverage of the hop's parent type.
    """
    lifted = Coverage(hop.referencing_spec.required_indices)
    for digest in submission.digests_for(hop.referencing_type):
        selected = np.zeros(digest.row_count, dtype=bool)
        if covered is not None:
            index = digest.index(below.referenced_spec)
            selected |= index.rows_where(index.key_mask(covered.covers))
        if seed_checked:
            selected |= digest.checked_rows
        add_row_keys(lifted, hop, digest, selected, optional_exempts_reverse)
    return lifted


def validate_complex(
    surjection: "ComplexSurjection",
    submission: "SubmissionDigest",
    dictionary: "KeyDictionary",
    reference_keys: Iterable | None = None,
) -> list[RowError]:
    """Report root keys with no path down to at least one leaf row.

    Root keys are checked when they have a row in a checked file, when a
    checked row of an intermediate file type reaches them, or when they are
    listed in reference_keys (keys expected to be covered, e.g. donors of a
    previous release whose chain was never satisfied). Other root keys only
    present in EXISTING data were certified by a previous release.

    Args:
        surjection: Chain of relations, root hop first
        submission: Complete submission digest
        dictionary: Compiled dictionary
        reference_keys: Root keys (tuples, or strings for one-field keys)

    Returns:
        COMPLEX_SURJECTION errors at the root, in first-seen key order
    """
    chain = surjection.chain
    leaf = chain[-1]
    exempt = dictionary.optional_exempts_reverse
    if not submission.has_file_type(surjection.leaf_type):
        log.info(
            "Complex surjection %s skipped: no %s data in submission",
            surjection.name, surjection.leaf_type,
        )
        return []

    # Fold leaf coverage up to the root
    covered = child_coverage(leaf, submission.digests_for(leaf.referencing_type), exempt)
    for depth in range(len(chain) - 2, -1, -1):
        covered = _lift(chain[depth], chain[depth + 1], submission, covered, False, exempt)

    # Root keys reached by checked rows of intermediate file types
    touched = None
    for depth in range(len(chain) - 2, -1, -1):
        touched = _lift(chain[depth], chain[depth + 1], submission, touched, True, exempt)

    references = set()
    for key in reference_keys or ():
        references.add(key if isinstance(key, tuple) else (key,))

    root_spec = chain[0].referenced_spec
    errors = []
    for key, file_name, checked in _first_seen(submission, surjection.root_type, root_spec):
        in_scope = checked or key in references or (
            touched is not None and touched.covers(key)
        )
        if not in_scope or covered.covers(key):
            continue
        errors.append(
            RowError(
                file_type=surjection.root_type,
                file_name=file_name,
                line_number=COMPLEX_SURJECTION_ERROR_LINE_NUMBER,
                kind=ErrorKind.COMPLEX_SURJECTION,
                key=key,
                field_names=root_spec.fields,
                referenced_type=surjection.leaf_type,
                referenced_fields=leaf.referencing_fields,
            )
        )

    missing_references = [k for k in references if not submission.contains(surjection.root_type, root_spec, k)]
    if missing_references:
        log.warning(
            "Complex surjection %s: %d reference key(s) absent from %s data",
            surjection.name, len(missing_references), surjection.root_type,
        )
    if errors:
        log.info("Complex surjection %s: %d uncovered root key(s)", surjection.name, len(errors))
    return errors
