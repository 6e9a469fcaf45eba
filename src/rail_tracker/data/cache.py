"""Keyed TTL cache for resolved query results."""

import time
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 30.0


@dataclass
class _Entry(Generic[T]):
    value: T
    expires_at: float


class TTLCache(Generic[T]):
    """Keyed cache where every entry expires after its own TTL.

    Writes replace the whole entry, so concurrent writers on the same key
    resolve as last-write-wins.
    """

    def __init__(self, ttl: float = DEFAULT_TTL_SECONDS):
        """Initialize the cache.

        Args:
            ttl: Default time-to-live in seconds for entries set without one.
        """
        self._ttl = ttl
        self._entries: dict[str, _Entry[T]] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def get(self, key: str) -> T | None:
        """Get the cached value for a key if it hasn't expired.

        Returns:
            The cached value if valid, None if expired or never set.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if time.monotonic() >= entry.expires_at:
            # expired entries are dropped on read
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: str, value: T, ttl: float | None = None) -> None:
        """Store a value under a key.

        Args:
            key: Cache key.
            value: The value to cache.
            ttl: Time-to-live in seconds (defaults to the cache TTL).
        """
        now = time.monotonic()
        self._sweep(now)
        ttl = self._ttl if ttl is None else ttl
        self._entries[key] = _Entry(value=value, expires_at=now + ttl)

    def _sweep(self, now: float) -> None:
        # keys that are never read again would otherwise stay forever
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            del self._entries[key]

    def clear(self) -> None:
        """Remove every entry."""
        self._entries = {}

    def stats(self) -> dict[str, int]:
        """Return the total entry count and how many are still live."""
        now = time.monotonic()
        live = sum(1 for entry in list(self._entries.values()) if now < entry.expires_at)
        return {"size": len(self._entries), "entries": live}
