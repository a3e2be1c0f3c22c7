"""Tests for StatsService and GET /api/stats.

Coverage breakdown
~~~~~~~~~~~~~~~~~~
* aggregation  – totals, direct vs group, mentions from groups only
* caching      – served from cache, nocache bypass, TTL expiry,
                 invalidation by live events
* degradation  – disconnected, connecting, session error
"""
import asyncio

import pytest

from chatbridge.cache import MISS, TTLCache
from chatbridge.config import StatsSettings
from chatbridge.connection.state import SessionStateStore
from chatbridge.stats.service import STATS_KEY, StatsService


def seed_unread(session):
    session.add_chat("1@c.us", unread_count=3)
    session.add_chat("2@c.us", unread_count=0)
    session.add_chat("3@c.us", unread_count=1, unread_mention_count=7)
    session.add_chat("10-20@g.us", is_group=True, unread_count=5, unread_mention_count=2)
    session.add_chat("11-21@g.us", is_group=True, unread_count=0, unread_mention_count=4)


@pytest.fixture
def stats_cache(clock):
    return TTLCache(10, name="stats", clock=clock)


class TestStatsService:
    @pytest.mark.asyncio
    async def test_aggregation(self, session, ready_store, stats_cache):
        seed_unread(session)
        stats = await StatsService(ready_store, stats_cache).get_stats()

        assert stats.status == "connected"
        assert stats.unreadTotal == 9
        assert stats.unreadChats == 2
        assert stats.unreadGroups == 1
        assert stats.unreadMentions == 2
        assert stats.totalChats == 5
        assert stats.cachedAt.endswith("Z")

    @pytest.mark.asyncio
    async def test_cached_until_ttl(self, session, ready_store, stats_cache, clock):
        service = StatsService(ready_store, stats_cache)
        first = await service.get_stats()
        session.add_chat("9@c.us", unread_count=4)

        assert await service.get_stats() is first
        assert session.calls["get_chats"] == 1

        clock.advance(10)
        assert (await service.get_stats()).unreadTotal == 4
        assert session.calls["get_chats"] == 2

    @pytest.mark.asyncio
    async def test_bypass_cache_refreshes(self, session, ready_store, stats_cache):
        service = StatsService(ready_store, stats_cache)
        await service.get_stats()
        session.add_chat("9@c.us", unread_count=4)

        fresh = await service.get_stats(use_cache=False)
        assert fresh.unreadTotal == 4
        assert await service.get_stats() is fresh

    @pytest.mark.asyncio
    async def test_clear_during_computation_not_overwritten(self, session, ready_store, stats_cache):
        session.add_chat("1@c.us", unread_count=1)
        session.delays["get_chats"] = 0.05
        service = StatsService(ready_store, stats_cache)

        pending = asyncio.ensure_future(service.get_stats())
        await asyncio.sleep(0.01)
        session.chats["1@c.us"].unread_count = 2
        stats_cache.clear()
        stale = await pending

        assert stale.status == "connected"
        assert stats_cache.get(STATS_KEY) is MISS

        session.delays["get_chats"] = 0
        assert (await service.get_stats()).unreadTotal == 2
        assert stats_cache.get(STATS_KEY).unreadTotal == 2

    @pytest.mark.asyncio
    async def test_disconnected(self, stats_cache):
        stats = await StatsService(SessionStateStore(), stats_cache).get_stats()
        assert stats.status == "disconnected"
        assert stats.unreadTotal == 0

    @pytest.mark.asyncio
    async def test_connecting(self, session, stats_cache):
        store = SessionStateStore()
        store.begin(session)
        stats = await StatsService(store, stats_cache).get_stats()
        assert stats.status == "connecting"

    @pytest.mark.asyncio
    async def test_error_is_reported_and_cached(self, session, ready_store, stats_cache):
        session.failures["get_chats"] = RuntimeError("browser gone")
        service = StatsService(ready_store, stats_cache)

        stats = await service.get_stats()
        assert stats.status == "error"
        assert stats.error == "browser gone"

        await service.get_stats()
        assert session.calls["get_chats"] == 1

    @pytest.mark.asyncio
    async def test_timeout_is_an_error(self, session, ready_store, stats_cache):
        session.delays["get_chats"] = 1
        service = StatsService(ready_store, stats_cache, StatsSettings(timeout_seconds=0.02))
        stats = await service.get_stats()
        assert stats.status == "error"
        assert stats.error == "Timeout"


class TestStatsEndpoint:
    def test_disconnected_omits_error(self, api_client):
        data = api_client.get("/api/stats").json()
        assert data["status"] == "connecting"
        assert "error" not in data

    def test_nocache(self, ready_client, session):
        first = ready_client.get("/api/stats").json()
        session.add_chat("1@c.us", unread_count=2)

        assert ready_client.get("/api/stats").json() == first
        refreshed = ready_client.get("/api/stats", params={"nocache": 1}).json()
        assert refreshed["unreadTotal"] == 2

    def test_incoming_message_invalidates(self, ready_client, session):
        session.add_chat("1@c.us")
        assert ready_client.get("/api/stats").json()["unreadTotal"] == 0

        ready_client.portal.call(session.receive_message, "1@c.us", "ping")

        assert ready_client.get("/api/stats").json()["unreadTotal"] == 1
