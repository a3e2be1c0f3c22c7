"""Unread statistics with a short-lived cache.

Dashboards poll ``/api/stats`` often, and listing chats is one of the
slowest session calls, so the aggregate is cached in the ``stats``
namespace. Live message and unread events clear it (see
``SessionManager``); a result computed across such a clear is returned but
not cached. Degraded results (not connected, error) are cached the
same way so a disconnected bridge is not hammered either.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from chatbridge.cache import MISS, TTLCache
from chatbridge.config import StatsSettings
from chatbridge.connection.state import SessionStateStore
from chatbridge.upstream import call_upstream

from .schemas import UnreadStats

logger = logging.getLogger(__name__)

STATS_KEY = "unread"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class StatsService:
    def __init__(
        self,
        store: SessionStateStore,
        cache: TTLCache,
        settings: Optional[StatsSettings] = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._settings = settings or StatsSettings()

    async def get_stats(self, use_cache: bool = True) -> UnreadStats:
        if use_cache:
            cached = self._cache.get(STATS_KEY)
            if cached is not MISS:
                return cached

        generation = self._cache.generation
        stats = await self._compute()
        if self._cache.generation == generation:
            self._cache.put(STATS_KEY, stats)
        else:
            logger.debug("[Stats] Cache invalidated during computation; result not cached")
        return stats

    async def _compute(self) -> UnreadStats:
        session = self._store.session
        if session is None or not self._store.is_ready:
            return UnreadStats(
                status="connecting" if session is not None else "disconnected",
                cachedAt=_now_iso(),
            )

        try:
            chats = await call_upstream(
                session.get_chats(),
                seconds=self._settings.timeout_seconds,
            )
        except Exception as exc:
            logger.warning("[Stats] Stats error: %s", exc)
            return UnreadStats(status="error", error=str(exc), cachedAt=_now_iso())

        unread_total = unread_chats = unread_groups = unread_mentions = 0
        for chat in chats:
            if chat.unread_count > 0:
                unread_total += chat.unread_count
                if chat.is_group:
                    unread_groups += 1
                    unread_mentions += chat.unread_mention_count or 0
                else:
                    unread_chats += 1

        return UnreadStats(
            status="connected",
            unreadTotal=unread_total,
            unreadChats=unread_chats,
            unreadGroups=unread_groups,
            unreadMentions=unread_mentions,
            totalChats=len(chats),
            cachedAt=_now_iso(),
        )
