"""
Trend cache - TTL cache for slow-changing aggregate results

The national year-by-year trend scans every bytime entry and only changes
when new sales are ingested, so the postcode service keeps it here instead
of recomputing it per request. The cache is owned by the service that uses
it (no module-level instance) and exposes invalidate() for ingest.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

logger = logging.getLogger('trend_cache')


class TTLCache:
    """TTL cache with a per-key load lock to prevent cache stampedes."""

    def __init__(self, ttl: float = 3600, clock: Callable[[], float] = time.monotonic):
        self._cache: Dict[Hashable, Tuple[Any, float]] = {}
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._key_locks: Dict[Hashable, threading.Lock] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            if key in self._cache:
                value, timestamp = self._cache[key]
                if self._clock() - timestamp < self._ttl:
                    self._hits += 1
                    return value
                else:
                    del self._cache[key]
            self._misses += 1
            return None

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._cache[key] = (value, self._clock())

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value, calling loader() on a miss.

        Concurrent misses on the same key wait for a single load. A loader
        that raises leaves the cache untouched.
        """
        value = self.get(key)
        if value is not None:
            return value

        with self._lock:
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            # Another thread may have loaded it while we waited
            value = self.get(key)
            if value is not None:
                return value
            value = loader()
            self.set(key, value)
            return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when key is None."""
        with self._lock:
            if key is None:
                self._cache.clear()
            else:
                self._cache.pop(key, None)
        logger.info(f"Trend cache invalidated ({'all' if key is None else key})")

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'size': len(self._cache),
                'ttl': self._ttl,
                'hits': self._hits,
                'misses': self._misses,
            }
