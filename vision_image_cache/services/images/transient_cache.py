"""
Per-run in-memory image caches.

Both structures are plain synchronous containers; callers mutate them only
between awaits, so no locking is needed on the event loop.
"""

from collections import OrderedDict
from typing import Dict, Iterator, List, Optional, Set

from ...constants import DEFAULT_TRANSIENT_CAPACITY


class TransientImageCache:
    """
    Capacity-bounded ``url -> payload`` map with FIFO eviction.

    Eviction follows insertion order, not access recency. Re-inserting an
    existing URL replaces the payload but keeps the original position.
    """

    def __init__(self, capacity: int = DEFAULT_TRANSIENT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[str, str]" = OrderedDict()
        self.evictions = 0

    def get(self, url: str) -> Optional[str]:
        return self._entries.get(url)

    def put(self, url: str, payload: str) -> None:
        if url in self._entries:
            self._entries[url] = payload
            return

        while len(self._entries) >= self.capacity:
            self._entries.popitem(last=False)
            self.evictions += 1
        self._entries[url] = payload

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def snapshot(self) -> Dict[str, int]:
        return {
            "size": len(self._entries),
            "capacity": self.capacity,
            "evictions": self.evictions,
        }


class FailedUrlSet:
    """URLs that exhausted every resolution strategy during the current run."""

    def __init__(self) -> None:
        self._urls: Set[str] = set()

    def add(self, url: str) -> None:
        self._urls.add(url)

    def discard(self, url: str) -> None:
        self._urls.discard(url)

    def clear(self) -> None:
        self._urls.clear()

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)

    def as_list(self) -> List[str]:
        return sorted(self._urls)
