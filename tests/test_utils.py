"""Tests for scripts/utils.py and scripts/constants.py."""

from __future__ import annotations

import math
import sys
from pathlib import Path


# Add scripts directory to path
SCRIPTS_DIR = str(Path(__file__).resolve().parent.parent / "scripts")
sys.path.insert(0, SCRIPTS_DIR)

from constants import Partition, SubmissionType  # noqa: E402
from utils import format_key, key_value, qualified_fields  # noqa: E402


class TestKeyValue:
    """Tests for key_value function."""

    def test_plain_value(self):
        """Test that values are returned unchanged."""
        assert key_value("DO1") == "DO1"
        assert key_value("do1") == "do1"

    def test_no_stripping(self):
        """Test that surrounding whitespace is significant."""
        assert key_value(" DO1 ") == " DO1 "

    def test_missing_codes(self):
        """Test that default missing codes map to None."""
        assert key_value("") is None
        assert key_value("-777") is None
        assert key_value("-888") is None

    def test_custom_missing_codes(self):
        """Test that missing codes are configurable."""
        assert key_value("NA", {"NA"}) is None
        assert key_value("-888", {"NA"}) == "-888"

    def test_none_and_nan(self):
        """Test that null values map to None."""
        assert key_value(None) is None
        assert key_value(math.nan) is None

    def test_non_string_converted(self):
        """Test that numbers become strings."""
        assert key_value(42) == "42"


class TestFormatKey:
    def test_values_joined(self):
        assert format_key(("DO1", "SP1")) == "DO1, SP1"

    def test_not_applicable(self):
        assert format_key(("SA1", None)) == "SA1, N/A"


class TestQualifiedFields:
    def test_fields(self):
        assert qualified_fields("ssm_m", ["analysis_id", "analyzed_sample_id"]) == (
            "ssm_m.[analysis_id, analyzed_sample_id]"
        )


class TestSubmissionType:
    def test_incremental_data(self):
        assert SubmissionType.is_incremental_data(SubmissionType.INCREMENTAL)
        assert not SubmissionType.is_incremental_data(
            SubmissionType.INCREMENTAL_TREATED_AS_EXISTING
        )

    def test_existing_data(self):
        assert SubmissionType.is_existing_data(SubmissionType.EXISTING)
        assert SubmissionType.is_existing_data(SubmissionType.INCREMENTAL_TREATED_AS_EXISTING)

    def test_checked(self):
        assert not SubmissionType.is_checked(SubmissionType.EXISTING)
        assert SubmissionType.is_checked(SubmissionType.INCREMENTAL)
        assert SubmissionType.is_checked(SubmissionType.INCREMENTAL_TREATED_AS_EXISTING)

    def test_partition(self):
        assert Partition.of(SubmissionType.EXISTING) == Partition.EXISTING
        assert Partition.of(SubmissionType.INCREMENTAL_TREATED_AS_EXISTING) == Partition.EXISTING
        assert Partition.of(SubmissionType.INCREMENTAL) == Partition.INCREMENTAL

    def test_sub_directories(self):
        assert SubmissionType.SUB_DIRECTORIES[SubmissionType.EXISTING] == "original"
        assert SubmissionType.SUB_DIRECTORIES[SubmissionType.INCREMENTAL] == "new"
