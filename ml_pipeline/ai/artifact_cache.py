"""Bounded TTL cache of deserialized model artifacts."""
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Tuple

from ml_pipeline.utils.logging import get_logger

logger = get_logger(__name__)


class ArtifactCache:
    """
    LRU cache with a per-entry time to live.

    Entries are keyed by artifact hash, so a retrained model (new hash) never
    hits a stale entry. Expired entries are dropped lazily on lookup.
    """

    def __init__(
        self,
        maxsize: int = 128,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            maxsize: Maximum number of entries before the least recently used is evicted
            ttl_seconds: Lifetime of an entry
            clock: Monotonic time source in seconds
        """
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        """Cached value for ``key``, or None when absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self.misses += 1
                logger.debug(f"Artifact cache entry expired: {key[:12]}")
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return value

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.maxsize:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Artifact cache evicted: {evicted[:12]}")

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
