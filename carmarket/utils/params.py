"""Coercion helpers for loosely-typed client parameters."""

from __future__ import annotations

import json
import math
from typing import Any, Optional


def parse_list(value: Any) -> list[str]:
    """
    Parse a multi-value parameter into a list of trimmed, non-empty strings.

    Accepts a list, a JSON array string, or a comma-separated string.

    Args:
        value: Raw parameter value

    Returns:
        list[str]: Parsed values (empty when value is falsy)

    Example:
        >>> parse_list('["Sunroof", " Leather "]')
        ['Sunroof', 'Leather']
        >>> parse_list("Red, Blue,,")
        ['Red', 'Blue']
    """
    if value is None or value == "":
        return []

    if isinstance(value, (list, tuple, set)):
        items = list(value)
    elif isinstance(value, str):
        items = None
        stripped = value.strip()
        if stripped.startswith("["):
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                items = parsed
        if items is None:
            items = value.split(",")
    else:
        items = str(value).split(",")

    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def to_number(value: Any) -> Optional[float]:
    """
    Convert a parameter to a finite float.

    Args:
        value: Raw value (number or numeric string)

    Returns:
        Optional[float]: The number, or None when value is not numeric
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def to_int(value: Any) -> Optional[int]:
    """Like to_number, truncated to int."""
    number = to_number(value)
    return int(number) if number is not None else None


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes"}
