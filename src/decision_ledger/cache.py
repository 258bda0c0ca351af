"""Read cache for aggregate record counts.

A derived, eventually-consistent view of the ledger: one entry per fixed
singleton key, each with a freshness timestamp. Single-record lookups never
go through here.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from .utils.logging_config import StructuredLogger

logger = StructuredLogger(__name__)


def total_key(kind: str) -> str:
    return f"{kind}:total"


@dataclass
class CachedCount:
    value: int
    fetched_at: float


class _Flight:
    """One in-flight refresh that concurrent readers wait on."""

    def __init__(self):
        self.done = threading.Event()
        self.value: int | None = None
        self.error: BaseException | None = None


class CountCache:
    def __init__(self, *, ttl_seconds: float = 15.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CachedCount] = {}
        self._inflight: dict[str, _Flight] = {}

    def _fresh(self, entry: CachedCount | None) -> bool:
        return entry is not None and (self._clock() - entry.fetched_at) < self.ttl_seconds

    def peek(self, key: str) -> CachedCount | None:
        with self._lock:
            return self._entries.get(key)

    def get(self, key: str, loader: Callable[[], int]) -> int:
        """Cached count for ``key``, refreshing through ``loader`` when stale.

        Only one refresh per key runs at a time. The cached value never
        decreases, since the ledger is append-only.
        """
        with self._lock:
            entry = self._entries.get(key)
            if self._fresh(entry):
                return entry.value
            flight = self._inflight.get(key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._inflight[key] = flight

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.value

        try:
            loaded = loader()
        except BaseException as exc:
            flight.error = exc
            raise
        else:
            with self._lock:
                previous = self._entries.get(key)
                value = max(loaded, previous.value) if previous else loaded
                self._entries[key] = CachedCount(value=value, fetched_at=self._clock())
            flight.value = value
            logger.debug("Count cache refreshed", key=key, value=value)
            return value
        finally:
            with self._lock:
                self._inflight.pop(key, None)
            flight.done.set()

    def note_included(self, key: str, count: int = 1) -> None:
        """Account for records this process just saw confirmed."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                entry.value += count

    def invalidate(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
