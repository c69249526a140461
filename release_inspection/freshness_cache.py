"""Time-bounded memoization in front of expensive producers.

Reads are optimistic: a fresh entry is returned without taking the lock.
A stale or missing entry is re-checked under the lock before the producer
runs, so racing callers trigger one recomputation per cache instance.
Producer errors propagate and are not stored. Expired entries are dropped
whenever a recomputation runs.
"""
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, TypeVar

from .logging_utils import logger


T = TypeVar("T")

DEFAULT_TTL_SECONDS = 3600.0


@dataclass(frozen=True)
class _Entry(Generic[T]):
    value: T
    refreshed_at: float


class FreshnessCache(Generic[T]):
    def __init__(
        self,
        producer: Callable[[str], T],
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        name: str = "",
    ):
        self._producer = producer
        self._ttl = float(ttl_seconds)
        self._clock = clock
        self._name = name or getattr(producer, "__name__", "cache")
        self._lock = threading.Lock()
        self._entries: Dict[str, _Entry[T]] = {}

    def _fresh(self, entry: Optional[_Entry[T]]) -> bool:
        return entry is not None and (self._clock() - entry.refreshed_at) < self._ttl

    def do(self, key: str = "") -> T:
        entry = self._entries.get(key)
        if self._fresh(entry):
            return entry.value

        with self._lock:
            entry = self._entries.get(key)
            if self._fresh(entry):
                logger.debug("cache_hit_after_wait", cache=self._name, key=key)
                return entry.value

            self._evict_expired()
            logger.info("cache_recompute", cache=self._name, key=key)
            value = self._producer(key)
            self._entries[key] = _Entry(value=value, refreshed_at=self._clock())
            return value

    def _evict_expired(self) -> None:
        expired = [k for k, e in self._entries.items() if not self._fresh(e)]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("cache_evicted", cache=self._name, count=len(expired))

    def __len__(self) -> int:
        return len(self._entries)

    def invalidate(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
