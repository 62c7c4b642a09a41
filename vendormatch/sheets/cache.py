from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

Row = dict[str, str]

_DEFAULT_TTL = 300.0  # 5 minutes


@dataclass(frozen=True)
class CacheEntry:
    rows: list[Row]
    fetched_at: float


class TableCache:
    """
    Table-name keyed snapshot cache with a fixed time-to-live.

    ``clock`` defaults to ``time.monotonic`` and can be swapped in tests.
    Entries are replaced whole, so readers never see a partially built
    snapshot.
    """

    def __init__(
        self,
        ttl: float = _DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, table_name: str) -> list[Row] | None:
        with self._lock:
            entry = self._entries.get(table_name)
            if entry and self._clock() - entry.fetched_at < self.ttl:
                self._hits += 1
                return entry.rows
            if entry:
                del self._entries[table_name]
            self._misses += 1
            return None

    def set(self, table_name: str, rows: list[Row]) -> None:
        entry = CacheEntry(rows=rows, fetched_at=self._clock())
        with self._lock:
            self._entries[table_name] = entry

    def stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._entries),
                "tables": sorted(self._entries),
                "ttl_seconds": self.ttl,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
            }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
