"""Short-TTL metric cache that keeps expired entries as fallbacks."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

from ..logger import get_logger

logger = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry:
    value: float
    timestamp_ms: int


class MetricCache:
    """Per-metric cache keyed by name.

    An entry older than the TTL reads as absent through ``get`` but stays in
    the map so ``get_stale_or_default`` can still serve it.

    Writes carry the time their data was observed. A write older than the
    stored entry is dropped, so an overlapping slow refresh cannot overwrite
    a newer one.
    """

    def __init__(
        self, ttl_seconds: float = 30.0, clock: Callable[[], int] = now_ms
    ):
        self.ttl_ms = int(ttl_seconds * 1000)
        self.clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> float | None:
        entry = self._entries.get(key)
        if entry is None or self.clock() - entry.timestamp_ms >= self.ttl_ms:
            return None
        return entry.value

    def peek(self, key: str) -> CacheEntry | None:
        """Entry for ``key`` regardless of age."""
        return self._entries.get(key)

    def set(self, key: str, value: float, timestamp_ms: int | None = None) -> bool:
        """Store ``value``; returns False if a newer entry is already held."""
        if timestamp_ms is None:
            timestamp_ms = self.clock()

        current = self._entries.get(key)
        if current is not None and current.timestamp_ms > timestamp_ms:
            logger.debug(
                "Dropping out-of-order write for %s (%d < %d)",
                key,
                timestamp_ms,
                current.timestamp_ms,
            )
            return False

        self._entries[key] = CacheEntry(value=value, timestamp_ms=timestamp_ms)
        return True

    def get_stale_or_default(self, key: str, default: float) -> float:
        entry = self._entries.get(key)
        if entry is not None:
            logger.warning(
                "Serving stale %s (age %.1fs)",
                key,
                (self.clock() - entry.timestamp_ms) / 1000,
            )
            return entry.value

        logger.warning("No cached %s, serving default %s", key, default)
        return default

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Metric cache cleared")

    def status(self) -> list[dict[str, Any]]:
        now = self.clock()
        return [
            {
                "key": key,
                "age_ms": now - entry.timestamp_ms,
                "value": entry.value,
                "fresh": now - entry.timestamp_ms < self.ttl_ms,
            }
            for key, entry in self._entries.items()
        ]
