"""Short-lived response memoisation and last-timeframe memory for API consumers."""
from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..utils.logging import get_logger
from ..utils.timeframes import is_timeframe

LOGGER = get_logger(__name__)

Clock = Callable[[], float]


def cache_key(endpoint: str, *parts: object) -> str:
    return ":".join([endpoint, *("" if part is None else str(part) for part in parts)])


@dataclass(slots=True)
class CacheEntry:
    value: Any
    stored_at: float


class ResponseCache:
    """TTL cache keyed by request parameters.

    Expired entries are ignored on read and overwritten on the next write;
    they are not actively deleted. Capacity is bounded by dropping the oldest
    insertion once ``max_entries`` is exceeded.
    """

    def __init__(
        self,
        ttl_seconds: float = 30.0,
        max_entries: int = 50,
        *,
        clock: Optional[Clock] = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = float(ttl_seconds)
        self.max_entries = max(1, int(max_entries))
        self._clock = clock or time.time
        self._entries: Dict[str, CacheEntry] = {}

    def _fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.stored_at <= self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None or not self._fresh(entry):
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None


class TimeframeMemory:
    """Remembers the last timeframe picked per ``pairId:provider``.

    With a ``path`` the mapping is persisted as JSON so it survives restarts;
    unreadable files are treated as empty.
    """

    def __init__(self, path: Optional[Path | str] = None) -> None:
        self.path = Path(path) if path is not None else None
        self._store: Dict[str, str] = self._load()

    @staticmethod
    def _key(pair_id: str, provider: str) -> str:
        return f"{pair_id}:{provider}"

    def _load(self) -> Dict[str, str]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unreadable timeframe memory %s: %s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(key): value for key, value in raw.items() if is_timeframe(value)}

    def _persist(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._store, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            LOGGER.warning("Could not persist timeframe memory to %s: %s", self.path, exc)

    def get(self, pair_id: str, provider: str) -> Optional[str]:
        return self._store.get(self._key(pair_id, provider))

    def set(self, pair_id: str, provider: str, timeframe: str) -> None:
        if not is_timeframe(timeframe):
            raise ValueError(f"Unsupported timeframe: {timeframe}")
        self._store[self._key(pair_id, provider)] = timeframe
        self._persist()
