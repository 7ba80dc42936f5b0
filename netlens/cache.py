"""
Bounded in-memory cache for enrichment data
"""

import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, TypeVar


V = TypeVar('V')

_MISSING = object()


class Cache(Generic[V]):
    """
    Bounded LRU cache with optional TTL.

    Nothing is written to disk: a cache lives exactly as long as the
    object that owns it. When full, the least recently used entry is
    evicted. Entries older than ``ttl`` seconds are treated as absent.
    ``None`` is a valid cached value (a lookup that found nothing), so
    use ``in`` rather than ``get()`` to test membership.
    """

    DEFAULT_MAX_ENTRIES = 512

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES,
                 ttl: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl = ttl
        self._clock = clock
        self._data: OrderedDict[Hashable, tuple[float, V]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def _is_valid(self, stored_at: float) -> bool:
        if self.ttl is None:
            return True
        return self._clock() - stored_at < self.ttl

    def _lookup(self, key: Hashable):
        entry = self._data.get(key)
        if entry is None:
            return _MISSING
        stored_at, value = entry
        if not self._is_valid(stored_at):
            del self._data[key]
            return _MISSING
        self._data.move_to_end(key)
        return value

    def get(self, key: Hashable, default: Optional[V] = None) -> Optional[V]:
        """
        Get cached value for key.

        Args:
            key: Cache key
            default: Returned when the key is absent or expired

        Returns:
            Cached value or default
        """
        value = self._lookup(key)
        if value is _MISSING:
            self.misses += 1
            return default
        self.hits += 1
        return value

    def set(self, key: Hashable, value: V):
        """Store value, evicting the least recently used entry when full"""
        self._data[key] = (self._clock(), value)
        self._data.move_to_end(key)
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    def __contains__(self, key: Hashable) -> bool:
        return self._lookup(key) is not _MISSING

    def __len__(self) -> int:
        return len(self._data)

    def clear(self):
        """Clear all cache entries"""
        self._data.clear()
        self.hits = 0
        self.misses = 0
