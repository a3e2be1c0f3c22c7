"""In-memory TTL cache with lazy eviction.

Each namespace (stats, avatars, contact identity) gets its own ``TTLCache``
with an independent time-to-live. Entries are never swept in the background:
an expired entry stays in memory until it is overwritten, but every read
treats it as a miss. Memory is bounded by the number of distinct chat and
contact identifiers seen, which is small for a single account.

All access happens on the event loop; no locking is needed because no method
awaits between reading and writing the underlying dict.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Hashable, TypeVar, Union

logger = logging.getLogger(__name__)

V = TypeVar("V")


class _Miss:
    """Sentinel returned for absent or expired keys."""

    _instance = None

    def __new__(cls) -> "_Miss":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


@dataclass
class CacheEntry(Generic[V]):
    value:     V
    stored_at: float = field(default_factory=time.monotonic)


class TTLCache(Generic[V]):
    """Key → value store whose entries become absent ``ttl_seconds`` after write."""

    def __init__(
        self,
        ttl_seconds: float,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry[V]] = {}
        # bumped on every invalidation so in-flight writers can detect it
        self.generation = 0

    def _is_fresh(self, entry: CacheEntry[V]) -> bool:
        return (self._clock() - entry.stored_at) < self.ttl_seconds

    def get(self, key: Hashable) -> Union[V, _Miss]:
        """Return the cached value, or ``MISS`` if absent or expired."""
        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry):
            return MISS
        return entry.value

    def peek(self, key: Hashable) -> Union[V, _Miss]:
        """Return the stored value even if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return MISS
        return entry.value

    def put(self, key: Hashable, value: V) -> None:
        """Store *value*, replacing any previous entry and resetting its age.

        ``None`` is a valid value: it records a negative result and
        suppresses repeated lookups until the entry expires.
        """
        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)
        self.generation += 1

    def clear(self) -> None:
        self._entries.clear()
        self.generation += 1

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not MISS

    def __len__(self) -> int:
        return len(self._entries)


class CacheRegistry:
    """The three cache namespaces used by the bridge.

    Attributes:
        stats: Unread aggregate served by ``GET /api/stats``.
        avatars: Profile picture URLs keyed by contact/chat id.
        contacts: ``ContactInfo`` keyed by participant id.
    """

    def __init__(
        self,
        stats_ttl: float = 10,
        avatar_ttl: float = 3600,
        contact_ttl: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.stats: TTLCache[Any] = TTLCache(stats_ttl, name="stats", clock=clock)
        self.avatars: TTLCache[Any] = TTLCache(avatar_ttl, name="avatars", clock=clock)
        self.contacts: TTLCache[Any] = TTLCache(contact_ttl, name="contacts", clock=clock)

    @classmethod
    def from_settings(cls, settings) -> "CacheRegistry":
        """Build the registry from the ``cache`` config section."""
        logger.info(
            "Cache TTLs: stats=%ss avatars=%ss contacts=%ss",
            settings.stats_ttl_seconds,
            settings.avatar_ttl_seconds,
            settings.contact_ttl_seconds,
        )
        return cls(
            stats_ttl=settings.stats_ttl_seconds,
            avatar_ttl=settings.avatar_ttl_seconds,
            contact_ttl=settings.contact_ttl_seconds,
        )
