"""TTL key-value store used for idempotent replay of successful responses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


@dataclass(frozen=True)
class _Entry(Generic[V]):
    value: V
    expires_at_ms: int


class TtlCache(Generic[K, V]):
    """In-memory map whose entries expire `ttl_ms` after they were written.

    Time is passed in explicitly so callers (and tests) control the clock. An expired entry is
    dropped when it is read, and every write purges all entries that have expired by then. Not safe
    for concurrent use from multiple OS threads.
    """

    def __init__(self, ttl_ms: int) -> None:
        if ttl_ms <= 0:
            raise ValueError("ttl_ms must be positive")
        self._ttl_ms = ttl_ms
        # Insertion order equals expiry order: one TTL and re-inserted keys move to the end.
        self._entries: dict[K, _Entry[V]] = {}

    def get(self, key: K, now_ms: int) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if now_ms >= entry.expires_at_ms:
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: K, value: V, now_ms: int) -> None:
        self.purge_expired(now_ms)
        self._entries.pop(key, None)
        self._entries[key] = _Entry(value=value, expires_at_ms=now_ms + self._ttl_ms)

    def purge_expired(self, now_ms: int) -> int:
        """Drop expired entries from the oldest end; return how many were removed."""

        expired: list[K] = []
        for key, entry in self._entries.items():
            if now_ms < entry.expires_at_ms:
                break
            expired.append(key)
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
