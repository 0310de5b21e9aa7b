"""Key validation rules for a submission digest.

Modules:
    base: Exception hierarchy and shared checks
    row_error: RowError value type
    uniqueness: Primary key uniqueness
    relation: Foreign key (primary) and reverse (secondary) relation checks
    surjection: Simple and complex surjection checks
    rules: Closed set of validation rules and their dispatch

Rule modules are imported directly (``from validators.relation import ...``)
so that the dictionary and digest modules can depend on ``validators.base``.

Example:
    >>> from validators import KeyValidationError
    >>> try:
    ...     engine.run(files)
    ... except KeyValidationError as e:
    ...     print(f"Key validation failed: {e}")
"""

from .base import (
    ConfigurationError,
    KeyValidationError,
    SubmissionReadError,
    ValidationCancelled,
    check_cancelled,
    validate_file_exists,
)
from .row_error import RowError

__all__ = [
    # Exceptions
    "KeyValidationError",
    "ConfigurationError",
    "SubmissionReadError",
    "ValidationCancelled",
    # Helpers
    "check_cancelled",
    "validate_file_exists",
    # Values
    "RowError",
]
