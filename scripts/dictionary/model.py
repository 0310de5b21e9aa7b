"""In-memory dictionary model for key validation.

Describes every file type (its fields and primary key), the relations
between file types, and which relations must be surjective. The model is
checked for internal consistency at construction and is read-only
afterwards, so validator threads may share it freely.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from constants import DEFAULT_MISSING_CODES
from validators.base import ConfigurationError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeySpec:
    """Ordered field names projected into a key.

    Positions listed in optional_indices may hold a not-applicable value;
    an absent value at any other position makes the key invalid.
    """

    fields: tuple[str, ...]
    optional_indices: frozenset[int] = frozenset()

    @property
    def required_indices(self) -> tuple[int, ...]:
        return tuple(i for i in range(len(self.fields)) if i not in self.optional_indices)

    def __str__(self) -> str:
        return "[" + ", ".join(self.fields) + "]"


@dataclass(frozen=True)
class FileType:
    name: str
    fields: tuple[str, ...]
    primary_key: tuple[str, ...]

    @property
    def primary_key_spec(self) -> KeySpec:
        return KeySpec(self.primary_key)


@dataclass(frozen=True)
class Relation:
    """Foreign key from referencing_type to referenced_type.

    Attributes:
        referencing_type: Child file type holding the foreign key
        referencing_fields: Foreign key fields in the child
        referenced_type: Parent file type
        referenced_fields: Matching fields in the parent
        bidirectional: Every parent key must also be referenced by a child
        optional_indices: Positions in referencing_fields whose absence
            exempts the row from matching on that position
        surjective: Every parent key must be referenced by at least one child
    """

    referencing_type: str
    referencing_fields: tuple[str, ...]
    referenced_type: str
    referenced_fields: tuple[str, ...]
    bidirectional: bool = False
    optional_indices: frozenset[int] = frozenset()
    surjective: bool = False

    def __post_init__(self):
        if not self.referencing_fields:
            raise ConfigurationError(f"Relation {self.name} declares no fields")
        if len(self.referencing_fields) != len(self.referenced_fields):
            raise ConfigurationError(
                f"Relation {self.name} has {len(self.referencing_fields)} referencing "
                f"field(s) but {len(self.referenced_fields)} referenced field(s)"
            )
        out_of_range = [
            i for i in self.optional_indices if i < 0 or i >= len(self.referencing_fields)
        ]
        if out_of_range:
            raise ConfigurationError(
                f"Relation {self.name} has optional indices out of range: {sorted(out_of_range)}"
            )

    @property
    def name(self) -> str:
        return (
            f"{self.referencing_type}[{', '.join(self.referencing_fields)}]"
            f"->{self.referenced_type}[{', '.join(self.referenced_fields)}]"
        )

    @property
    def has_optionals(self) -> bool:
        return bool(self.optional_indices)

    @property
    def referencing_spec(self) -> KeySpec:
        return KeySpec(self.referencing_fields, self.optional_indices)

    @property
    def referenced_spec(self) -> KeySpec:
        return KeySpec(self.referenced_fields)

    @property
    def required_referenced_spec(self) -> KeySpec:
        """Parent fields matched when the optional positions are absent."""
        indices = self.referencing_spec.required_indices
        return KeySpec(tuple(self.referenced_fields[i] for i in indices))


@dataclass(frozen=True)
class ComplexSurjection:
    """Multi-hop coverage requirement, e.g. donor <- specimen <- sample <- ssm_m.

    chain[0] references the root type; each following hop references the
    previous hop's referencing type; chain[-1] is the leaf relation.
    """

    chain: tuple[Relation, ...]

    def __post_init__(self):
        if not self.chain:
            raise ConfigurationError("Complex surjection declares an empty chain")
        for upper, lower in zip(self.chain, self.chain[1:]):
            if lower.referenced_type != upper.referencing_type:
                raise ConfigurationError(
                    f"Complex surjection chain is broken between {upper.name} and {lower.name}"
                )

    @property
    def root_type(self) -> str:
        return self.chain[0].referenced_type

    @property
    def leaf_type(self) -> str:
        return self.chain[-1].referencing_type

    @property
    def name(self) -> str:
        types = [self.root_type] + [r.referencing_type for r in self.chain]
        return "->".join(types)


@dataclass(frozen=True)
class KeyDictionary:
    """Compiled dictionary consumed by the digest builder and validators.

    Args:
        file_types: Declared file types, in declaration order
        relations: Declared relations
        complex_surjections: Declared multi-hop surjections
        missing_codes: Field values treated as absent
        optional_exempts_reverse: Whether a row with an absent optional
            relation field is left out of reverse coverage (bidirectional
            and surjection checks) as well as the forward check

    Raises:
        ConfigurationError: If the dictionary is internally inconsistent
    """

    file_types: tuple[FileType, ...]
    relations: tuple[Relation, ...] = ()
    complex_surjections: tuple[ComplexSurjection, ...] = ()
    missing_codes: frozenset[str] = DEFAULT_MISSING_CODES
    optional_exempts_reverse: bool = True
    _by_name: dict = field(init=False, repr=False, compare=False)
    _outgoing: dict = field(init=False, repr=False, compare=False)
    _incoming: dict = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_name = {}
        for file_type in self.file_types:
            if file_type.name in by_name:
                raise ConfigurationError(f"File type '{file_type.name}' is declared twice")
            if not file_type.primary_key:
                raise ConfigurationError(f"File type '{file_type.name}' has no primary key")
            self._check_fields(file_type, file_type.primary_key, "primary key")
            by_name[file_type.name] = file_type
        object.__setattr__(self, "_by_name", by_name)

        outgoing = {name: [] for name in by_name}
        incoming = {name: [] for name in by_name}
        for relation in self.relations:
            for type_name in (relation.referencing_type, relation.referenced_type):
                if type_name not in by_name:
                    raise ConfigurationError(
                        f"Relation {relation.name} references undeclared file type '{type_name}'. "
                        f"Declared file types are: {sorted(by_name)}"
                    )
            self._check_fields(
                by_name[relation.referencing_type], relation.referencing_fields, relation.name
            )
            self._check_fields(
                by_name[relation.referenced_type], relation.referenced_fields, relation.name
            )
            outgoing[relation.referencing_type].append(relation)
            incoming[relation.referenced_type].append(relation)
        object.__setattr__(
            self, "_outgoing", {k: tuple(v) for k, v in outgoing.items()}
        )
        object.__setattr__(
            self, "_incoming", {k: tuple(v) for k, v in incoming.items()}
        )

        for surjection in self.complex_surjections:
            for hop in surjection.chain:
                if hop not in self.relations:
                    raise ConfigurationError(
                        f"Complex surjection {surjection.name} uses undeclared relation {hop.name}"
                    )

        # Fails on cycles
        self.topological_order()
        log.debug(
            "Dictionary compiled: %d file types, %d relations, %d complex surjections",
            len(self.file_types), len(self.relations), len(self.complex_surjections),
        )

    @staticmethod
    def _check_fields(file_type: FileType, fields: tuple[str, ...], context: str) -> None:
        undeclared = [f for f in fields if f not in file_type.fields]
        if undeclared:
            raise ConfigurationError(
                f"{context} uses field(s) {undeclared} not declared in file type "
                f"'{file_type.name}'"
            )

    def file_type(self, name: str) -> FileType:
        try:
            return self._by_name[name]
        except KeyError:
            raise ConfigurationError(f"Unknown file type '{name}'") from None

    @property
    def file_type_names(self) -> tuple[str, ...]:
        return tuple(ft.name for ft in self.file_types)

    def primary_key_fields(self, file_type: str) -> tuple[str, ...]:
        return self.file_type(file_type).primary_key

    def relations_for(self, file_type: str) -> tuple[Relation, ...]:
        """Outgoing relations declared on a file type."""
        self.file_type(file_type)
        return self._outgoing[file_type]

    def incoming_relations(self, file_type: str) -> tuple[Relation, ...]:
        self.file_type(file_type)
        return self._incoming[file_type]

    def referencing_types_of(self, file_type: str) -> tuple[str, ...]:
        """File types holding a relation to file_type, in declaration order."""
        names = []
        for relation in self.incoming_relations(file_type):
            if relation.referencing_type not in names:
                names.append(relation.referencing_type)
        return tuple(names)

    @staticmethod
    def is_surjective(relation: Relation) -> bool:
        return relation.surjective

    def key_specs(self, file_type: str) -> tuple[KeySpec, ...]:
        """Every key projection the digest of file_type must index.

        The primary key comes first, followed by the referencing side of
        outgoing relations and the referenced side (plus its required-only
        subset) of incoming relations.
        """
        specs = [self.file_type(file_type).primary_key_spec]
        for relation in self.relations_for(file_type):
            specs.append(relation.referencing_spec)
        for relation in self.incoming_relations(file_type):
            specs.append(relation.referenced_spec)
            if relation.has_optionals:
                specs.append(relation.required_referenced_spec)

        unique = []
        for spec in specs:
            if spec.fields and spec not in unique:
                unique.append(spec)
        return tuple(unique)

    def topological_order(self) -> tuple[str, ...]:
        """File type names with parents before children.

        Self relations are allowed; any other cycle is a configuration error.
        Ties keep declaration order.
        """
        remaining = {
            name: {
                r.referenced_type for r in self._outgoing[name] if r.referenced_type != name
            }
            for name in self._by_name
        }
        order = []
        while remaining:
            ready = [name for name, parents in remaining.items() if not parents]
            if not ready:
                raise ConfigurationError(
                    f"Relations form a cycle between file types: {sorted(remaining)}"
                )
            for name in ready:
                order.append(name)
                del remaining[name]
            for parents in remaining.values():
                parents.difference_update(ready)
        return tuple(order)
