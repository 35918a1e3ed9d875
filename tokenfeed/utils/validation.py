"""Total coercion helpers for loosely-typed upstream JSON.

None of these raise: a value that cannot be parsed yields ``None`` (or the
supplied default) so the caller can decide per field what a missing value
means.
"""
from __future__ import annotations

import math
import re
from typing import Any, Iterable, Mapping, Optional, Sequence

ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_valid_address(value: Any) -> bool:
    return isinstance(value, str) and bool(ADDRESS_RE.match(value))


def to_float(value: Any, default: Optional[float] = None) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    number = to_float(value)
    if number is None:
        return default
    return int(number)


def to_str(value: Any, default: Optional[str] = None) -> Optional[str]:
    if value is None:
        return default
    if isinstance(value, str):
        text = value.strip()
        return text or default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def first_present(row: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """Return the first value in ``row`` under any of ``keys`` that is not ``None``."""

    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return None


def dig(payload: Any, *path: str) -> Any:
    """Walk nested mappings, returning ``None`` as soon as a level is missing."""

    current = payload
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def as_list(payload: Any, *candidates: Sequence[str]) -> list:
    """Return the first list found at one of the candidate paths.

    An empty path means "the payload itself". Non-list results are skipped so
    callers always get a list back.
    """

    for path in candidates:
        value = dig(payload, *path) if path else payload
        if isinstance(value, list):
            return value
    return []
