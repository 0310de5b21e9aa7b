"""Shared utility functions for key validation scripts.

This module provides common helper functions used across the dictionary,
digest and reporting modules to avoid code duplication and ensure consistency.
"""

import math
from typing import Any, Iterable

from constants import DEFAULT_MISSING_CODES


def key_value(val: Any, missing_codes: Iterable[str] = DEFAULT_MISSING_CODES) -> str | None:
    """Convert a raw field value to a key component.

    Values are compared case-sensitively and are never stripped or otherwise
    normalized; only absent values are mapped to None.

    Args:
        val: Raw field value from a row
        missing_codes: Values that denote an absent value

    Returns:
        String value, or None if the value is absent

    Examples:
        >>> key_value("DO1")
        'DO1'
        >>> key_value("-888") is None
        True
        >>> key_value(None) is None
        True
        >>> key_value(" DO1")
        ' DO1'
    """
    if val is None:
        return None
    if isinstance(val, float) and math.isnan(val):
        return None

    str_val = str(val)
    if str_val in missing_codes:
        return None
    return str_val


def format_key(values: Iterable[str | None]) -> str:
    """Format key values for log and report messages.

    Args:
        values: Key component values (None for not applicable)

    Returns:
        Comma separated values

    Examples:
        >>> format_key(("DO1", "SP1"))
        'DO1, SP1'
        >>> format_key(("SA1", None))
        'SA1, N/A'
    """
    return ", ".join("N/A" if v is None else v for v in values)


def qualified_fields(file_type: str, fields: Iterable[str]) -> str:
    """Format field names qualified by their file type.

    Examples:
        >>> qualified_fields("donor", ["donor_id"])
        'donor.[donor_id]'
    """
    return f"{file_type}.[{', '.join(fields)}]"
