"""
latam_energy.snapshot_cache — Thread-safe, bounded, keyed LRU cache.

Holds derived state under an explicit string key instead of implicit
memoization:

    snapshots  scenario key            → ScenarioSnapshot
    scales     hashing.scale_cache_key → HeatmapScale

Design contract:
    - Bounded by ``max_entries``. The least-recently-used entry is
      evicted when a new entry exceeds the bound.
    - Thread-safe via threading.Lock. The lock is held only during dict
      operations, never while a value is being built.
    - Cached values are immutable; no copy is made on read.
    - Two callers may build the same key concurrently. The last writer
      wins; values are deterministic, so both are identical.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Generic, TypeVar

logger = logging.getLogger("latam.cache")

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_CACHED_SNAPSHOTS: int = int(os.getenv("MAX_CACHED_SNAPSHOTS", "8"))
"""Assembled scenarios held in memory. Controlled by MAX_CACHED_SNAPSHOTS."""

MAX_CACHED_SCALES: int = int(os.getenv("MAX_CACHED_SCALES", "32"))
"""Heatmap scales held in memory. Controlled by MAX_CACHED_SCALES."""


class SnapshotCache(Generic[T]):
    """Bounded LRU keyed by string.

    Usage::

        cache = SnapshotCache(name="scales", max_entries=32)
        scale = cache.get_or_build(key, lambda: build_scale(values, metric))
    """

    def __init__(self, name: str = "snapshots", max_entries: int | None = None) -> None:
        self._name = name
        self._max: int = max_entries if max_entries is not None else MAX_CACHED_SNAPSHOTS
        if self._max < 1:
            raise ValueError(f"max_entries must be >= 1, got {self._max}")
        self._lock: threading.Lock = threading.Lock()
        self._entries: OrderedDict[str, T] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> T | None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self._hits += 1
                return self._entries[key]
            self._misses += 1
            return None

    def put(self, key: str, value: T) -> None:
        if not key or not isinstance(key, str):
            raise ValueError(f"cache key must be a non-empty string, got {key!r}")
        with self._lock:
            if key not in self._entries:
                while len(self._entries) >= self._max:
                    evicted_key, _ = self._entries.popitem(last=False)
                    logger.info(json.dumps({
                        "event": "cache_eviction",
                        "cache": self._name,
                        "key": evicted_key,
                        "max_entries": self._max,
                    }))
            self._entries[key] = value
            self._entries.move_to_end(key)

    def get_or_build(self, key: str, builder: Callable[[], T]) -> T:
        """Return the cached value, building and storing it on a miss.

        Exceptions from ``builder`` propagate and nothing is cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = builder()
        self.put(key, value)
        return value

    def invalidate(self, key: str | None = None) -> int:
        """Drop one key, or everything when ``key`` is None.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            if key is not None:
                if key in self._entries:
                    del self._entries[key]
                    return 1
                return 0
            count = len(self._entries)
            self._entries.clear()
            return count

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    @property
    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def stats(self) -> dict[str, Any]:
        """Cache statistics for diagnostics."""
        with self._lock:
            return {
                "cache": self._name,
                "max_entries": self._max,
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "keys": list(self._entries),
            }
