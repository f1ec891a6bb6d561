"""
A bounded, in-memory key/value cache with a time-to-live (TTL) for storing API responses.
Enhanced with statistics tracking for cache hits and misses.
"""

import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 200
DEFAULT_TTL_SECONDS = 30 * 60


@dataclass
class CacheEntry:
    key: str
    value: Any
    stored_at: float


class ResponseCache:
    """
    Manages a process-wide response cache with TTL expiry and insertion-order eviction.

    Lookups are keyed by an operation type plus its parameters. Expired entries are
    dropped lazily on access, or eagerly via ``clear_expired``. When an insert pushes
    the size past ``max_size`` the single oldest-inserted entry is evicted (insertion
    order, not access order). All mutations are serialized by a lock so concurrent
    download pipelines can share one instance.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        stats_callback: Callable[[bool], None] | None = None,
        time_func: Callable[[], float] | None = None,
    ):
        """
        Initializes the cache.

        Args:
            max_size: Maximum number of entries kept at once.
            ttl_seconds: Age in seconds after which an entry is no longer returned.
            stats_callback: Optional callback to report cache hits (True) or misses
            (False).
            time_func: Clock used for entry ages, defaults to ``time.monotonic``.
        """
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be non-negative")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._stats_callback = stats_callback
        self._now = time_func or time.monotonic
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    @staticmethod
    def make_key(operation_type: str, params: Any) -> str:
        """Combines an operation type with a canonical serialization of its params."""
        if isinstance(params, dict):
            serialized = json.dumps(
                params, sort_keys=True, separators=(",", ":"), default=str
            )
        else:
            serialized = json.dumps(params, default=str)
        return f"{operation_type}:{serialized}"

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds

    def _record(self, is_hit: bool) -> None:
        if self._stats_callback:
            self._stats_callback(is_hit)

    def get(self, operation_type: str, params: Any) -> Any | None:
        """
        Retrieves a value from the cache. Returns None if the key is not found or
        expired; an expired entry is removed as part of the lookup.
        """
        key = self.make_key(operation_type, params)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                hit = False
            elif self._is_expired(entry, self._now()):
                del self._entries[key]
                log.debug(f"Cache entry expired for key '{key}'.")
                hit = False
            else:
                hit = True

        self._record(hit)
        return entry.value if hit else None

    def put(self, operation_type: str, params: Any, value: Any) -> None:
        """
        Inserts or overwrites a value, evicting the oldest-inserted entry when the
        cache grows past its maximum size.
        """
        key = self.make_key(operation_type, params)
        with self._lock:
            self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._now())
            if len(self._entries) > self.max_size:
                evicted_key, _ = self._entries.popitem(last=False)
                log.debug(f"Cache full, evicted oldest entry '{evicted_key}'.")

    def clear(self) -> None:
        """Removes all items from the cache."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        log.debug(f"Cache cleared ({count} entries removed).")

    def clear_expired(self) -> int:
        """Removes every expired entry and returns how many were dropped."""
        with self._lock:
            now = self._now()
            expired = [
                key
                for key, entry in self._entries.items()
                if self._is_expired(entry, now)
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            log.debug(f"Cache cleanup: removed {len(expired)} expired entries.")
        return len(expired)

    def stats(self) -> dict[str, float]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl_seconds,
            }
