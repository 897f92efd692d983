"""Process-local TTL cache for slowly changing collections (e.g. the project list)."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger: logging.Logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float  # on the cache's clock


class ResourceCache:
    """Keyed cache whose entries expire a fixed number of minutes after being fetched.

    Lookup, fetch and store run under one lock, so concurrent callers never
    see an expired entry and never observe a value without its expiry.
    """

    _entries: dict[str, CacheEntry]
    _clock: Callable[[], float]

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries = {}
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, key: str, ttl_minutes: float, refresh: bool, fetch_fn: Callable[[], Any]) -> Any:
        """Return the cached value for key, calling fetch_fn when missing, expired or refresh is set."""
        with self._lock:
            entry = self._entries.get(key)
            now = self._clock()
            if not refresh and entry is not None and now < entry.expires_at:
                logger.debug(f"Cache hit for '{key}'")
                return entry.value

            reason = "refresh requested" if refresh else ("expired" if entry else "miss")
            logger.debug(f"Fetching '{key}' ({reason})")
            value = fetch_fn()
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + ttl_minutes * 60)
            return value

    def peek(self, key: str) -> CacheEntry | None:
        """Current non-expired entry for key, without fetching."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or self._clock() >= entry.expires_at:
                return None
            return entry

    def invalidate(self, key: str | None = None) -> None:
        """Drop one entry, or everything when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)
