"""Submission inputs and the two-partition submission digest."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from constants import Partition, SubmissionType
from dictionary.model import KeySpec
from digest.file_digest import FileDigest
from validators.base import ConfigurationError

Row = tuple[int, Mapping[str, str]]


@dataclass(frozen=True)
class SubmissionFile:
    """One file instance handed over by the orchestrator.

    Attributes:
        file_type: Dictionary file type name
        file_name: Name used in reports
        submission_type: constants.SubmissionType value
        rows: Restartable iterable of (line number, field -> value) pairs
    """

    file_type: str
    file_name: str
    submission_type: str
    rows: Iterable[Row]

    def __post_init__(self):
        if self.submission_type not in SubmissionType.ALL:
            raise ConfigurationError(
                f"Invalid submission type '{self.submission_type}' for {self.file_name}. "
                f"Valid options are: {sorted(SubmissionType.ALL)}"
            )

    @property
    def partition(self) -> str:
        return Partition.of(self.submission_type)


class SubmissionDigest:
    """File type -> FileDigest, split into existing and incremental bundles.

    Created fresh for every validation run and read-only once built.
    """

    def __init__(
        self,
        existing: Mapping[str, FileDigest] | None = None,
        incremental: Mapping[str, FileDigest] | None = None,
    ):
        self.existing = MappingProxyType(dict(existing or {}))
        self.incremental = MappingProxyType(dict(incremental or {}))

    def digest_for(self, file_type: str, partition: str) -> FileDigest | None:
        bundle = self.existing if partition == Partition.EXISTING else self.incremental
        return bundle.get(file_type)

    def digests_for(self, file_type: str) -> list[FileDigest]:
        """Digests of a file type, existing partition first."""
        return [
            d for d in (self.existing.get(file_type), self.incremental.get(file_type))
            if d is not None
        ]

    def has_file_type(self, file_type: str) -> bool:
        return file_type in self.existing or file_type in self.incremental

    @property
    def file_types(self) -> set[str]:
        return set(self.existing) | set(self.incremental)

    def contains(self, file_type: str, spec: KeySpec, key: tuple) -> bool:
        """Whether any partition of file_type holds key for spec."""
        return any(key in d.index(spec) for d in self.digests_for(file_type))

    def __repr__(self) -> str:
        return (
            f"<SubmissionDigest(existing={sorted(self.existing)}, "
            f"incremental={sorted(self.incremental)})>"
        )
