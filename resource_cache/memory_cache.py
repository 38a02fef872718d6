import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, TypeVar

from .models import CacheEntry

T = TypeVar("T")


class MemoryCache(Generic[T]):
    """In-process tier. Entries outlive their TTL (as stale) until ``retention``."""

    def __init__(self,
                 success_ttl: float,
                 failure_ttl: float,
                 retention: Optional[float] = None,
                 max_entries: int = 5000,
                 clock: Callable[[], float] = time.time):
        self.success_ttl = success_ttl
        self.failure_ttl = failure_ttl
        self.retention = max(retention or 0, success_ttl, failure_ttl)
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()

    def get(self, key: str) -> Optional[CacheEntry[T]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= self.retention:
            del self._entries[key]
            return None
        return entry

    def set(self, key: str, value: T, is_failure: bool = False) -> CacheEntry[T]:
        entry = CacheEntry(value=value, timestamp=self._clock(), is_failure=is_failure)
        self._entries.pop(key, None)
        self._entries[key] = entry
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return entry

    def update(self, key: str, value: T) -> None:
        """Replace the value of an existing entry without touching its age"""
        entry = self._entries.get(key)
        if entry is not None:
            entry.value = value

    def is_fresh(self, entry: CacheEntry[T]) -> bool:
        ttl = self.failure_ttl if entry.is_failure else self.success_ttl
        return self._clock() - entry.timestamp < ttl

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
