"""Thread-safe LRU cache with hit/miss statistics.

Used by the Environment for compiled templates. Every operation holds a
single lock for the duration of a dict update, which is short enough that
contention is negligible next to a render.

"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class LRUCache(Generic[K, V]):
    """Bounded mapping that evicts the least recently used entry.

    A ``maxsize`` of 0 disables caching; ``None`` means unbounded.

    Example:
            >>> cache: LRUCache[str, int] = LRUCache(maxsize=2)
            >>> cache.set("a", 1)
            >>> cache.set("b", 2)
            >>> cache.get("a")
            1
            >>> cache.set("c", 3)  # evicts "b"
            >>> "b" in cache
            False

    """

    __slots__ = ("_data", "_hits", "_lock", "_maxsize", "_misses")

    def __init__(self, maxsize: int | None = 128):
        self._data: OrderedDict[K, V] = OrderedDict()
        self._lock = threading.Lock()
        self._maxsize = maxsize
        self._hits = 0
        self._misses = 0

    @property
    def maxsize(self) -> int | None:
        return self._maxsize

    def get(self, key: K) -> V | None:
        with self._lock:
            try:
                value = self._data[key]
            except KeyError:
                self._misses += 1
                return None
            self._data.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: K, value: V) -> None:
        if self._maxsize == 0:
            return
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            if self._maxsize is not None:
                while len(self._data) > self._maxsize:
                    self._data.popitem(last=False)

    def get_or_set(self, key: K, factory: Callable[[], V]) -> V:
        """Return the cached value, computing and storing it on a miss.

        ``factory`` runs outside the lock; two threads missing the same key
        at once may both compute it, and the last one stored wins.
        """
        value = self.get(key)
        if value is None:
            value = factory()
            self.set(key, value)
        return value

    def pop(self, key: K) -> V | None:
        with self._lock:
            return self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int | float | None]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "hits": self._hits,
                "misses": self._misses,
                "size": len(self._data),
                "max_size": self._maxsize,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
