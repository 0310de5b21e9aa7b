"""Base validation utilities for the key validation engine.

This module defines the exception hierarchy shared by the dictionary,
digest and validation modules. Data violations found in a submission are
never raised: they are recorded as RowError values. Exceptions are reserved
for configuration errors, unreadable input and cancellation.
"""

from pathlib import Path


class KeyValidationError(Exception):
    """Base exception for key validation failures."""

    pass


class ConfigurationError(KeyValidationError):
    """Malformed dictionary or run configuration, detected before any file is read."""

    pass


class SubmissionReadError(KeyValidationError):
    """A submission file could not be read; aborts the whole run."""

    pass


class ValidationCancelled(KeyValidationError):
    """Raised when the orchestrator cancels a run in progress."""

    pass


def validate_file_exists(file_path: str | Path, file_description: str) -> Path:
    """Validate that a submission file exists and is a regular file.

    Args:
        file_path: Path to file
        file_description: Description of file for error messages

    Returns:
        Resolved Path object

    Raises:
        SubmissionReadError: If file doesn't exist or isn't a file
    """
    path = Path(file_path)
    if not path.exists():
        raise SubmissionReadError(f"{file_description} not found: {path}")
    if not path.is_file():
        raise SubmissionReadError(f"{file_description} is not a file: {path}")
    return path


def check_cancelled(cancel_event) -> None:
    """Raise ValidationCancelled if the cancel event has been set.

    Args:
        cancel_event: threading.Event (or None when cancellation is not used)
    """
    if cancel_event is not None and cancel_event.is_set():
        raise ValidationCancelled("Key validation cancelled")
