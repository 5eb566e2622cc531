"""
ID Allocators
=============

Monotonic counters for forest and milestone identifiers.

The allocator never advances on its own: peek() is side-effect free,
and the counter moves only when the write returned by claim() commits
in the same storage batch as the record that uses the id. A rejected
operation therefore cannot leak an id.
"""

from __future__ import annotations

from ..contracts.records import COUNTERS, StorageWrite
from ..storage import StorageBackend


class IdAllocator:

    def __init__(self, storage: StorageBackend, counter_name: str):
        self._storage = storage
        self._counter_name = counter_name

    @property
    def counter_name(self) -> str:
        return self._counter_name

    def last_allocated(self) -> int:
        """0 when nothing has been allocated yet."""
        return self._storage.get(COUNTERS, self._counter_name) or 0

    def peek(self) -> int:
        """The id the next successful commit will receive."""
        return self.last_allocated() + 1

    def claim(self, value: int) -> StorageWrite:
        """Counter write that records `value` as allocated."""
        if value != self.peek():
            raise ValueError(
                f"{self._counter_name} allocator expected {self.peek()}, got {value}"
            )
        return StorageWrite(COUNTERS, self._counter_name, value)
