"""Constants and enumerations for the key validation engine.

Centralizes magic strings into named constants for type safety and IDE support.
"""


class SubmissionType:
    """Classification of a submitted file instance."""

    EXISTING = "EXISTING"
    INCREMENTAL = "INCREMENTAL"
    # Clinical data re-submitted: validated against the new baseline
    INCREMENTAL_TREATED_AS_EXISTING = "INCREMENTAL_TREATED_AS_EXISTING"

    ALL = {EXISTING, INCREMENTAL, INCREMENTAL_TREATED_AS_EXISTING}

    SUB_DIRECTORIES = {
        EXISTING: "original",
        INCREMENTAL: "new",
        INCREMENTAL_TREATED_AS_EXISTING: "original",
    }

    @staticmethod
    def is_incremental_data(submission_type: str) -> bool:
        return submission_type == SubmissionType.INCREMENTAL

    @staticmethod
    def is_existing_data(submission_type: str) -> bool:
        return not SubmissionType.is_incremental_data(submission_type)

    @staticmethod
    def is_checked(submission_type: str) -> bool:
        """Whether rows of this file are validated in the current run."""
        return submission_type != SubmissionType.EXISTING


class Partition:
    """Digest partitions of a submission."""

    EXISTING = "existing"
    INCREMENTAL = "incremental"

    ALL = (EXISTING, INCREMENTAL)

    @staticmethod
    def of(submission_type: str) -> str:
        if SubmissionType.is_existing_data(submission_type):
            return Partition.EXISTING
        return Partition.INCREMENTAL


class ErrorKind:
    """Kinds of key validation errors."""

    UNIQUENESS = "UNIQUENESS"
    PRIMARY_RELATION = "PRIMARY_RELATION"
    SECONDARY_RELATION = "SECONDARY_RELATION"
    SIMPLE_SURJECTION = "SIMPLE_SURJECTION"
    COMPLEX_SURJECTION = "COMPLEX_SURJECTION"
    PRIMARY_KEY_INCOMPLETE = "PRIMARY_KEY_INCOMPLETE"
    STRUCTURAL = "STRUCTURAL"

    ROW_DEFECTS = {PRIMARY_KEY_INCOMPLETE, STRUCTURAL}
    RELATIONS = {PRIMARY_RELATION, SECONDARY_RELATION}
    SURJECTIONS = {SIMPLE_SURJECTION, COMPLEX_SURJECTION}
    ALL = {UNIQUENESS} | ROW_DEFECTS | RELATIONS | SURJECTIONS


class RunStatus:
    """Outcome of a key validation run."""

    VALID = "VALID"
    INVALID = "INVALID"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"

    ALL = {VALID, INVALID, ERROR, CANCELLED}


# Synthetic line numbers for file-level errors (no single offending row)
RELATION_ERROR_LINE_NUMBER = 0
SIMPLE_SURJECTION_ERROR_LINE_NUMBER = -1
COMPLEX_SURJECTION_ERROR_LINE_NUMBER = -2

# Values treated as absent in key fields
DEFAULT_MISSING_CODES = frozenset({"", "-777", "-888"})

DEFAULT_MAX_WORKERS = 4
