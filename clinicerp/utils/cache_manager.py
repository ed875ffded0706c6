"""In-process cache with TTL expiry, LRU eviction and a periodic sweep.

Each ``CacheManager`` owns a single key space. Entries remember when they were
written (for TTL) and when they were last read (for LRU). A daemon thread
removes expired entries every ``cleanup_interval`` seconds.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, Pattern, Tuple, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")

_REGISTRY: Dict[str, "CacheManager"] = {}
_REGISTRY_LOCK = threading.Lock()


@dataclass
class CacheEntry(Generic[T]):
    value: T
    timestamp: float
    last_accessed: float


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_size: int
    hits: int
    misses: int
    evictions: int
    memory_estimate: str

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "memory_estimate": self.memory_estimate,
        }


class CacheManager(Generic[T]):
    """Thread-safe in-memory cache with TTL and least-recently-used eviction."""

    def __init__(
        self,
        max_size: int = 100,
        ttl: float = 30.0,
        cleanup_interval: float = 60.0,
        name: str = "Cache",
        clock: Callable[[], float] = time.monotonic,
        start_sweeper: bool = True,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._cache: Dict[str, CacheEntry[T]] = {}
        self.max_size = max_size
        self.ttl = ttl
        self.cleanup_interval = cleanup_interval
        self.name = name
        self._clock = clock
        self._lock = threading.RLock()
        self._logger = logging.getLogger(f"clinicerp.cache.{name}")

        self._hits = 0
        self._misses = 0
        self._evictions = 0

        self._stop_event: Optional[threading.Event] = None
        self._sweeper: Optional[threading.Thread] = None

        with _REGISTRY_LOCK:
            _REGISTRY[name] = self

        if start_sweeper and cleanup_interval and cleanup_interval > 0:
            self.start_cleanup()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            now = self._clock()
            if now - entry.timestamp > self.ttl:
                del self._cache[key]
                self._misses += 1
                return None

            entry.last_accessed = now
            self._hits += 1
            return entry.value

    def get_with_stale_check(self, key: str) -> Optional[Tuple[T, bool]]:
        """Return ``(value, is_stale)`` without dropping expired entries."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            now = self._clock()
            entry.last_accessed = now
            self._hits += 1
            return entry.value, (now - entry.timestamp > self.ttl)

    def set(self, key: str, value: T) -> None:
        with self._lock:
            if len(self._cache) >= self.max_size and key not in self._cache:
                self._evict_lru()

            now = self._clock()
            self._cache[key] = CacheEntry(value=value, timestamp=now, last_accessed=now)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def delete_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        with self._lock:
            doomed = [key for key in self._cache if regex.search(key)]
            for key in doomed:
                del self._cache[key]

        if doomed:
            self._logger.debug("Deleted %d entries matching pattern: %s", len(doomed), regex.pattern)
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            size = len(self._cache)
            self._cache.clear()
        self._logger.debug("Cleared %d entries", size)

    def cleanup(self) -> int:
        """Remove expired entries and return how many were dropped."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._cache.items() if now - entry.timestamp > self.ttl]
            for key in expired:
                del self._cache[key]

        if expired:
            self._logger.debug("Cleanup: removed %d expired entries", len(expired))
        return len(expired)

    def get_stats(self) -> CacheStats:
        with self._lock:
            size = len(self._cache)
            return CacheStats(
                size=size,
                max_size=self.max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                memory_estimate=_estimate_memory(size),
            )

    def _evict_lru(self) -> None:
        if not self._cache:
            return
        oldest_key = min(self._cache, key=lambda k: self._cache[k].last_accessed)
        del self._cache[oldest_key]
        self._evictions += 1
        self._logger.debug("Evicted LRU entry: %s", oldest_key)

    def start_cleanup(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return

        stop_event = threading.Event()
        self._stop_event = stop_event
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            args=(stop_event,),
            name=f"cache-sweeper-{self.name}",
            daemon=True,
        )
        self._sweeper.start()

    def _sweep_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.cleanup_interval):
            cleaned = self.cleanup()
            stats = self.get_stats()
            if stats.size > 0 or cleaned > 0:
                self._logger.debug(
                    "Stats: size=%d/%d, hits=%d, misses=%d, evictions=%d, memory~%s",
                    stats.size,
                    stats.max_size,
                    stats.hits,
                    stats.misses,
                    stats.evictions,
                    stats.memory_estimate,
                )

    def stop_cleanup(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        self._stop_event = None
        self._sweeper = None

    def destroy(self) -> None:
        self.stop_cleanup()
        self.clear()
        with _REGISTRY_LOCK:
            if _REGISTRY.get(self.name) is self:
                del _REGISTRY[self.name]


def _estimate_memory(size: int) -> str:
    # Rough figure: about 1 KiB per entry
    estimated = size * 1024
    if estimated < 1024:
        return f"{estimated} B"
    if estimated < 1024 * 1024:
        return f"{estimated / 1024:.2f} KB"
    return f"{estimated / 1024 / 1024:.2f} MB"


def registered_caches() -> Dict[str, CacheManager]:
    with _REGISTRY_LOCK:
        return dict(_REGISTRY)


def all_cache_stats() -> Dict[str, dict]:
    return {name: manager.get_stats().to_dict() for name, manager in registered_caches().items()}
