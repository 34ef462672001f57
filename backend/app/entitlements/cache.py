"""Time-bounded cache used for processor lookups such as the product catalog."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generic, Optional, Protocol, Tuple, TypeVar

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Cache(Protocol[T]):
    """Cache operations the catalog relies on. Swap in a shared cache for multi-instance deployments."""

    def get(self, key: str) -> Tuple[Optional[T], bool]:
        ...

    def set(self, key: str, value: T) -> None:
        ...


@dataclass
class _CacheEntry(Generic[T]):
    value: T
    stored_at: datetime


class TTLCache(Generic[T]):
    """In-process cache that keeps expired entries so callers can fall back to stale data."""

    def __init__(self, ttl: timedelta, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        if ttl < timedelta(0):
            raise ValueError("ttl must be non-negative")
        self._ttl = ttl
        self._clock = clock or _utcnow
        self._entries: Dict[str, _CacheEntry[T]] = {}

    def get(self, key: str) -> Tuple[Optional[T], bool]:
        """Return ``(value, fresh)``; ``(None, False)`` when nothing is cached."""

        entry = self._entries.get(key)
        if entry is None:
            return None, False
        fresh = self._clock() - entry.stored_at < self._ttl
        return entry.value, fresh

    def set(self, key: str, value: T) -> None:
        self._entries[key] = _CacheEntry(value=value, stored_at=self._clock())

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)
