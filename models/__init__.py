"""Database models for key validation run summaries and errors."""

from models.base import Base
from models.reported_key_error import ReportedKeyError
from models.key_validation_run import KeyValidationRun

__all__ = [
    "Base",
    "ReportedKeyError",
    "KeyValidationRun",
]
