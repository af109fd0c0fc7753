"""Bounded least-recently-used counter for blocked-host statistics."""

from __future__ import annotations

from collections import OrderedDict


class LRUCounter:
    """Counts hits per key while keeping at most ``capacity`` keys.

    Every increment moves the key to the most-recent end; inserting a new key
    at capacity evicts the least-recently-touched key, regardless of its
    count.
    """

    def __init__(self, capacity: int = 500) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._counts: OrderedDict[str, int] = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, key: object) -> bool:
        return key in self._counts

    def get(self, key: str) -> int:
        return self._counts.get(key, 0)

    def inc(self, key: str) -> int:
        if key in self._counts:
            self._counts.move_to_end(key)
        elif len(self._counts) >= self._capacity:
            self._counts.popitem(last=False)
        count = self._counts.get(key, 0) + 1
        self._counts[key] = count
        return count

    def top(self, n: int = 10) -> list[tuple[str, int]]:
        """Return the *n* highest counts, most-recent first among ties."""
        ranked = sorted(reversed(self._counts.items()), key=lambda item: item[1], reverse=True)
        return ranked[:n]

    def items(self) -> list[tuple[str, int]]:
        """Entries ordered least- to most-recently touched."""
        return list(self._counts.items())

    def clear(self) -> None:
        self._counts.clear()
