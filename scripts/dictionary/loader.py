"""Load a key dictionary from YAML.

Expected structure::

    missing_codes: ["", "-777", "-888"]
    optional_exempts_reverse: true
    file_types:
      donor:
        fields: [donor_id, donor_sex]
        primary_key: [donor_id]
    relations:
      - from: specimen
        fields: [donor_id]
        to: donor
        other_fields: [donor_id]
        bidirectional: false
        optionals: []
        surjective: true
    complex_surjections:
      - chain: [donor, specimen, sample, ssm_m]

Structure problems raise ConfigurationError before any submission file is read.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from constants import DEFAULT_MISSING_CODES
from dictionary.model import ComplexSurjection, FileType, KeyDictionary, Relation
from validators.base import ConfigurationError

log = logging.getLogger(__name__)

VALID_TOP_LEVEL_KEYS = {
    "file_types",
    "relations",
    "complex_surjections",
    "missing_codes",
    "optional_exempts_reverse",
}
VALID_RELATION_KEYS = {
    "from", "fields", "to", "other_fields", "bidirectional", "optionals", "surjective",
}


def _require_list_of_str(value: Any, context: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"{context} must be a list of strings, got: {value!r}")
    return tuple(value)


def parse_file_types(raw: Any) -> tuple[FileType, ...]:
    """Parse the file_types mapping.

    Args:
        raw: Mapping of file type name to {fields, primary_key}

    Returns:
        File types in declaration order

    Raises:
        ConfigurationError: If the block is malformed
    """
    if not isinstance(raw, dict) or not raw:
        raise ConfigurationError("Dictionary field 'file_types' must be a non-empty mapping")

    file_types = []
    for name, spec in raw.items():
        if not isinstance(spec, dict):
            raise ConfigurationError(
                f"File type '{name}' must be a mapping, got: {type(spec).__name__}"
            )
        if "fields" not in spec:
            raise ConfigurationError(f"File type '{name}' is missing 'fields'")
        fields = _require_list_of_str(spec["fields"], f"file_types.{name}.fields")
        primary_key = _require_list_of_str(
            spec.get("primary_key", []), f"file_types.{name}.primary_key"
        )
        file_types.append(FileType(str(name), fields, primary_key))
    return tuple(file_types)


def parse_relation(raw: Any, index: int) -> Relation:
    """Parse one entry of the relations list.

    Raises:
        ConfigurationError: If the entry is malformed
    """
    context = f"relations[{index}]"
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{context} must be a mapping, got: {type(raw).__name__}")

    unknown = set(raw) - VALID_RELATION_KEYS
    if unknown:
        raise ConfigurationError(
            f"{context} has unknown key(s) {sorted(unknown)}. "
            f"Valid keys are: {sorted(VALID_RELATION_KEYS)}"
        )
    for required in ("from", "fields", "to", "other_fields"):
        if required not in raw:
            raise ConfigurationError(f"{context} is missing '{required}'")

    optionals = raw.get("optionals", []) or []
    if not isinstance(optionals, list) or not all(
        isinstance(i, int) and not isinstance(i, bool) for i in optionals
    ):
        raise ConfigurationError(f"{context}.optionals must be a list of integers")

    for flag in ("bidirectional", "surjective"):
        if flag in raw and not isinstance(raw[flag], bool):
            raise ConfigurationError(f"{context}.{flag} must be true or false")

    return Relation(
        referencing_type=str(raw["from"]),
        referencing_fields=_require_list_of_str(raw["fields"], f"{context}.fields"),
        referenced_type=str(raw["to"]),
        referenced_fields=_require_list_of_str(raw["other_fields"], f"{context}.other_fields"),
        bidirectional=raw.get("bidirectional", False),
        optional_indices=frozenset(optionals),
        surjective=raw.get("surjective", False),
    )


def resolve_chain(type_names: tuple[str, ...], relations: tuple[Relation, ...]) -> ComplexSurjection:
    """Resolve a root-to-leaf list of file types into a chain of relations.

    Args:
        type_names: File type names from root to leaf (at least two)
        relations: Declared relations

    Returns:
        ComplexSurjection over the matching relations

    Raises:
        ConfigurationError: If a hop has no relation or more than one
    """
    if len(type_names) < 2:
        raise ConfigurationError(
            f"Complex surjection chain needs at least two file types, got: {list(type_names)}"
        )

    hops = []
    for parent, child in zip(type_names, type_names[1:]):
        candidates = [
            r for r in relations
            if r.referencing_type == child and r.referenced_type == parent
        ]
        if len(candidates) != 1:
            raise ConfigurationError(
                f"Complex surjection hop {child}->{parent} must match exactly one relation, "
                f"found {len(candidates)}"
            )
        hops.append(candidates[0])
    return ComplexSurjection(tuple(hops))


def build_dictionary(raw: Any) -> KeyDictionary:
    """Build a KeyDictionary from an already parsed YAML document.

    Raises:
        ConfigurationError: If the document is malformed or inconsistent
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("Dictionary document must be a YAML mapping")

    unknown = set(raw) - VALID_TOP_LEVEL_KEYS
    if unknown:
        raise ConfigurationError(
            f"Dictionary has unknown key(s) {sorted(unknown)}. "
            f"Valid keys are: {sorted(VALID_TOP_LEVEL_KEYS)}"
        )

    file_types = parse_file_types(raw.get("file_types"))

    raw_relations = raw.get("relations", []) or []
    if not isinstance(raw_relations, list):
        raise ConfigurationError("Dictionary field 'relations' must be a list")
    relations = tuple(parse_relation(r, i) for i, r in enumerate(raw_relations))

    raw_surjections = raw.get("complex_surjections", []) or []
    if not isinstance(raw_surjections, list):
        raise ConfigurationError("Dictionary field 'complex_surjections' must be a list")
    surjections = []
    for i, entry in enumerate(raw_surjections):
        if not isinstance(entry, dict) or "chain" not in entry:
            raise ConfigurationError(f"complex_surjections[{i}] must be a mapping with a 'chain'")
        chain = _require_list_of_str(entry["chain"], f"complex_surjections[{i}].chain")
        surjections.append(resolve_chain(chain, relations))

    missing_codes = DEFAULT_MISSING_CODES
    if "missing_codes" in raw:
        missing_codes = frozenset(
            _require_list_of_str(raw["missing_codes"], "missing_codes")
        )

    optional_exempts_reverse = raw.get("optional_exempts_reverse", True)
    if not isinstance(optional_exempts_reverse, bool):
        raise ConfigurationError("Dictionary field 'optional_exempts_reverse' must be true or false")

    return KeyDictionary(
        file_types=file_types,
        relations=relations,
        complex_surjections=tuple(surjections),
        missing_codes=missing_codes,
        optional_exempts_reverse=optional_exempts_reverse,
    )


def load_dictionary(path: str | Path) -> KeyDictionary:
    """Load and compile a dictionary YAML file.

    Args:
        path: Path to the dictionary YAML

    Returns:
        Compiled KeyDictionary

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Dictionary file not found: {path}")

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse dictionary file {path}: {e}") from e

    dictionary = build_dictionary(raw)
    log.info(
        "Loaded dictionary %s: %d file types, %d relations",
        path.name, len(dictionary.file_types), len(dictionary.relations),
    )
    return dictionary
