"""Small in-memory TTL cache for derived table data.

Facet lists (distinct values per column under the other filters) are the
expensive part of rendering a table page, and the same filter combination is
requested again on every page flip, sort click and link-site switch.  The
view state keeps one ``TTLCache`` per loaded dataset for them.
"""

import threading
import time
from collections import OrderedDict
from typing import Any, Hashable


class TTLCache:
    """Thread-safe LRU cache whose entries also expire after ``ttl_seconds``.

    Usage::

        cache = TTLCache(maxsize=256, ttl_seconds=600)
        cache.set(("法令名", "[]"), ["電波法", "道路運送車両法"])
        cache.get(("法令名", "[]"))  # the list, or None once expired/evicted
    """

    def __init__(self, maxsize: int = 256, ttl_seconds: float = 600.0) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self._maxsize = maxsize
        self._ttl = ttl_seconds
        # key -> (value, expires_at); most recently used last
        self._store: "OrderedDict[Hashable, tuple[Any, float]]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: Hashable) -> Any | None:
        """Return the cached value for ``key``, or None if absent or expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None or time.monotonic() > entry[1]:
                self._store.pop(key, None)
                self._misses += 1
                return None
            self._store.move_to_end(key)
            self._hits += 1
            return entry[0]

    def set(self, key: Hashable, value: Any) -> None:
        """Store ``value``; the least recently used entry goes when full."""
        with self._lock:
            self._store[key] = (value, time.monotonic() + self._ttl)
            self._store.move_to_end(key)
            while len(self._store) > self._maxsize:
                self._store.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int]:
        """Return ``hits``, ``misses`` and live ``size``."""
        with self._lock:
            now = time.monotonic()
            for key in [k for k, (_, exp) in self._store.items() if now > exp]:
                del self._store[key]
            return {"hits": self._hits, "misses": self._misses, "size": len(self._store)}
