"""Text cache abstraction used by the notification text generator."""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class TextCache(Protocol):
    """get/put cache for generated copy."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, text: str) -> None: ...


@dataclass
class _Entry:
    text: str
    stored_at: float


class MemoryTextCache:
    """In-process LRU cache with a fixed time-to-live.

    Entries are kept in insertion/use order. A ``put`` drops expired entries
    from the old end, then evicts the least recently used ones beyond
    ``max_size``. ``clock`` returns seconds and defaults to ``time.time``;
    tests pass a fake.
    """

    def __init__(
        self,
        ttl_seconds: float = 7 * 24 * 60 * 60,
        *,
        max_size: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()

    def _expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.stored_at > self.ttl_seconds

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry.text

    def put(self, key: str, text: str) -> None:
        now = self._clock()
        self._purge_expired(now)
        self._entries[key] = _Entry(text=text, stored_at=now)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if self._expired(e, now)]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
