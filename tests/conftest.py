"""Shared test fixtures for key validation tests."""

from __future__ import annotations

import copy
import sys
from pathlib import Path
from typing import Callable

import pytest

# Add scripts directory to path so all tests can import from it
SCRIPTS_DIR = str(Path(__file__).resolve().parent.parent / "scripts")
if SCRIPTS_DIR not in sys.path:
    sys.path.insert(0, SCRIPTS_DIR)

from constants import Partition, SubmissionType  # noqa: E402
from dictionary import build_dictionary  # noqa: E402
from digest import DigestBuilder, SubmissionDigest, SubmissionFile  # noqa: E402

CLINICAL_DICTIONARY = {
    "file_types": {
        "donor": {
            "fields": ["donor_id", "donor_sex"],
            "primary_key": ["donor_id"],
        },
        "specimen": {
            "fields": ["specimen_id", "donor_id", "specimen_type"],
            "primary_key": ["specimen_id"],
        },
        "sample": {
            "fields": ["analyzed_sample_id", "specimen_id"],
            "primary_key": ["analyzed_sample_id"],
        },
        "ssm_m": {
            "fields": ["analysis_id", "analyzed_sample_id", "matched_sample_id"],
            "primary_key": ["analysis_id", "analyzed_sample_id"],
        },
    },
    "relations": [
        {
            "from": "specimen", "fields": ["donor_id"],
            "to": "donor", "other_fields": ["donor_id"],
        },
        {
            "from": "sample", "fields": ["specimen_id"],
            "to": "specimen", "other_fields": ["specimen_id"],
        },
        {
            "from": "ssm_m", "fields": ["analyzed_sample_id"],
            "to": "sample", "other_fields": ["analyzed_sample_id"],
        },
    ],
}


@pytest.fixture
def make_dictionary() -> Callable:
    """Factory fixture for compiled dictionaries.

    Starts from a donor -> specimen -> sample -> ssm_m dictionary; keyword
    overrides replace top-level keys, and relation_flags updates the
    relation with the given index.

    Example:
        >>> dictionary = make_dictionary(relation_flags={0: {"bidirectional": True}})
    """
    def _create(relation_flags: dict[int, dict] | None = None, **overrides):
        raw = copy.deepcopy(CLINICAL_DICTIONARY)
        raw.update(overrides)
        for index, flags in (relation_flags or {}).items():
            raw["relations"][index].update(flags)
        return build_dictionary(raw)

    return _create


@pytest.fixture
def dictionary(make_dictionary):
    """The default clinical dictionary."""
    return make_dictionary()


@pytest.fixture
def make_file() -> Callable:
    """Factory fixture for in-memory SubmissionFiles.

    Rows are dicts numbered from line 2 (line 1 is the header), or explicit
    (line number, dict) pairs. Any other iterable is used as the row stream
    unchanged.

    Example:
        >>> donor = make_file("donor", [{"donor_id": "D1", "donor_sex": "F"}])
    """
    def _create(
        file_type: str,
        rows: list,
        submission_type: str = SubmissionType.INCREMENTAL,
        file_name: str | None = None,
    ) -> SubmissionFile:
        if isinstance(rows, list):
            rows = [row if isinstance(row, tuple) else (i + 2, row) for i, row in enumerate(rows)]
        return SubmissionFile(
            file_type=file_type,
            file_name=file_name or f"{file_type}.txt",
            submission_type=submission_type,
            rows=rows,
        )

    return _create


@pytest.fixture
def digest_submission() -> Callable:
    """Factory fixture building a SubmissionDigest from SubmissionFiles."""
    def _digest(dictionary, files: list[SubmissionFile]) -> SubmissionDigest:
        builder = DigestBuilder(dictionary)
        groups: dict[tuple[str, str], list[SubmissionFile]] = {}
        for submission_file in files:
            groups.setdefault(
                (submission_file.file_type, submission_file.partition), []
            ).append(submission_file)

        bundles = {Partition.EXISTING: {}, Partition.INCREMENTAL: {}}
        for (file_type, partition), group in groups.items():
            bundles[partition][file_type] = builder.build_partition(file_type, partition, group)
        return SubmissionDigest(
            existing=bundles[Partition.EXISTING],
            incremental=bundles[Partition.INCREMENTAL],
        )

    return _digest


class RowFactory:
    """Rows of the clinical file types, built from their key values."""

    @staticmethod
    def donor(*donor_ids: str) -> list[dict]:
        return [{"donor_id": d, "donor_sex": "female"} for d in donor_ids]

    @staticmethod
    def specimen(*pairs: tuple[str, str]) -> list[dict]:
        """Rows from (specimen_id, donor_id) pairs."""
        return [
            {"specimen_id": s, "donor_id": d, "specimen_type": "Primary tumour"}
            for s, d in pairs
        ]

    @staticmethod
    def sample(*pairs: tuple[str, str]) -> list[dict]:
        """Rows from (analyzed_sample_id, specimen_id) pairs."""
        return [{"analyzed_sample_id": a, "specimen_id": s} for a, s in pairs]

    @staticmethod
    def ssm_m(*pairs: tuple[str, str]) -> list[dict]:
        """Rows from (analysis_id, analyzed_sample_id) pairs."""
        return [
            {"analysis_id": a, "analyzed_sample_id": s, "matched_sample_id": "N1"}
            for a, s in pairs
        ]


@pytest.fixture
def rows() -> RowFactory:
    return RowFactory()


@pytest.fixture
def temp_tsv_file(tmp_path):
    """Fixture to create temporary TSV files for testing."""

    def _create_tsv(content: str, filename: str = "test.tsv") -> Path:
        """Create a TSV file with given content.

        Args:
            content: TSV content (including headers)
            filename: Name of the file

        Returns:
            Path to the created file
        """
        file_path = tmp_path / filename
        file_path.write_text(content)
        return file_path

    return _create_tsv
