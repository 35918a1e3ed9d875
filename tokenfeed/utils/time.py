"""Time helper utilities."""
from __future__ import annotations

import math
import time
from datetime import datetime, timezone
from typing import Any, Optional

import pandas as pd

# Anything above this is assumed to be expressed in milliseconds.
MS_THRESHOLD = 100_000_000_000


def now_seconds() -> int:
    return int(time.time())


def to_unix_seconds(value: Any) -> Optional[int]:
    """Coerce a provider timestamp into integer unix seconds.

    Accepts ints/floats (seconds or milliseconds), digit strings, ISO-8601
    strings and ``datetime`` objects. Returns ``None`` when the value cannot
    be interpreted.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            try:
                stamp = pd.Timestamp(text)
            except (TypeError, ValueError):
                return None
            if pd.isna(stamp):
                return None
            if stamp.tzinfo is None:
                stamp = stamp.tz_localize("UTC")
            return int(stamp.timestamp())
        if not math.isfinite(number):
            return None
    else:
        return None

    if abs(number) >= MS_THRESHOLD:
        number = number / 1000.0
    return int(math.floor(number))
