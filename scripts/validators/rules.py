"""Closed set of key validation rules and their single dispatch point.

A submission is validated by planning one rule per check (uniqueness of a
file type, a relation, a simple surjection, a complex surjection) in
dependency order and evaluating each rule against the shared, read-only
submission digest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from validators.relation import validate_relation
from validators.surjection import validate_complex, validate_simple
from validators.uniqueness import validate_uniqueness

if TYPE_CHECKING:
    from dictionary.model import ComplexSurjection, KeyDictionary, Relation
    from digest.submission import SubmissionDigest
    from validators.row_error import RowError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UniquenessRule:
    file_type: str

    @property
    def name(self) -> str:
        return f"uniqueness[{self.file_type}]"


@dataclass(frozen=True)
class RelationRule:
    relation: "Relation"
    # Relation introduced by a dictionary change: existing rows are re-checked
    check_existing: bool = False

    @property
    def name(self) -> str:
        kind = "bidirectional relation" if self.relation.bidirectional else "relation"
        return f"{kind}[{self.relation.name}]"


@dataclass(frozen=True)
class SimpleSurjectionRule:
    relation: "Relation"

    @property
    def name(self) -> str:
        return f"simple surjection[{self.relation.name}]"


@dataclass(frozen=True)
class ComplexSurjectionRule:
    surjection: "ComplexSurjection"
    reference_keys: frozenset = frozenset()

    @property
    def name(self) -> str:
        return f"complex surjection[{self.surjection.name}]"


ValidationRule = UniquenessRule | RelationRule | SimpleSurjectionRule | ComplexSurjectionRule


def _evaluate_uniqueness(rule, submission, dictionary):
    return validate_uniqueness(rule.file_type, submission)


def _evaluate_relation(rule, submission, dictionary):
    return validate_relation(rule.relation, submission, dictionary, rule.check_existing)


def _evaluate_simple(rule, submission, dictionary):
    return validate_simple(rule.relation, submission, dictionary)


def _evaluate_complex(rule, submission, dictionary):
    return validate_complex(rule.surjection, submission, dictionary, rule.reference_keys)


_EVALUATORS = {
    UniquenessRule: _evaluate_uniqueness,
    RelationRule: _evaluate_relation,
    SimpleSurjectionRule: _evaluate_simple,
    ComplexSurjectionRule: _evaluate_complex,
}


def evaluate(
    rule: ValidationRule,
    submission: "SubmissionDigest",
    dictionary: "KeyDictionary",
) -> list["RowError"]:
    """Evaluate one rule and return its errors (the rule's own buffer)."""
    try:
        evaluator = _EVALUATORS[type(rule)]
    except KeyError:
        raise TypeError(f"Unknown validation rule: {rule!r}") from None
    return evaluator(rule, submission, dictionary)


def plan_rules(
    dictionary: "KeyDictionary",
    submission: "SubmissionDigest",
    new_relations: Iterable["Relation"] = (),
    reference_keys: dict[str, Iterable] | None = None,
) -> list[ValidationRule]:
    """Plan the rules for a submission, parents before children.

    For each file type present in the submission (in topological order):
    its uniqueness rule, then its outgoing relations, then the reverse
    checks of bidirectional relations whose child type is not submitted,
    then the simple surjections it must satisfy as a parent. Complex
    surjections follow, ordered by root type.

    Args:
        dictionary: Compiled dictionary
        submission: Complete submission digest
        new_relations: Relations introduced by a dictionary change
        reference_keys: Root file type -> keys expected to be covered

    Returns:
        Ordered list of rules
    """
    new_relations = set(new_relations)
    reference_keys = reference_keys or {}
    order = dictionary.topological_order()
    present = submission.file_types

    rules: list[ValidationRule] = []
    for file_type in order:
        if file_type not in present:
            continue
        rules.append(UniquenessRule(file_type))
        for relation in dictionary.relations_for(file_type):
            rules.append(RelationRule(relation, relation in new_relations))
        for relation in dictionary.incoming_relations(file_type):
            if relation.bidirectional and relation.referencing_type not in present:
                # No child rows: every parent key is unreferenced
                rules.append(RelationRule(relation, relation in new_relations))
            if dictionary.is_surjective(relation):
                rules.append(SimpleSurjectionRule(relation))

    surjections = sorted(
        dictionary.complex_surjections, key=lambda s: order.index(s.root_type)
    )
    for surjection in surjections:
        if surjection.root_type not in present:
            continue
        keys = frozenset(
            k if isinstance(k, tuple) else (k,)
            for k in reference_keys.get(surjection.root_type, ())
        )
        rules.append(ComplexSurjectionRule(surjection, keys))

    log.info("Planned %d key validation rule(s)", len(rules))
    return rules
