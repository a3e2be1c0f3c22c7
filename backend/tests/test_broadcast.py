"""Tests for the broadcast hub, event payloads and the WebSocket endpoint."""
import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from starlette.websockets import WebSocketState

from chatbridge.broadcast import EVENT_TYPES, BroadcastHub
from chatbridge.broadcast import events
from chatbridge.session import Chat, SessionMessage


class FakeObserver:
    """Stand-in for a Starlette WebSocket."""

    def __init__(self, open_: bool = True, fail: bool = False):
        state = WebSocketState.CONNECTED if open_ else WebSocketState.DISCONNECTED
        self.client_state = state
        self.application_state = state
        self.send_text = AsyncMock(side_effect=RuntimeError("broken pipe") if fail else None)

    def frames(self):
        return [json.loads(c.args[0]) for c in self.send_text.await_args_list]


STATUS = {"connected": False, "hasQr": False, "hasPairingCode": False, "state": "disconnected"}


@pytest.fixture
def hub():
    return BroadcastHub(lambda: dict(STATUS))


class TestBroadcastHub:
    @pytest.mark.asyncio
    async def test_attach_sends_status(self, hub):
        observer = FakeObserver()
        await hub.attach(observer)
        assert observer.frames() == [{"type": "status", "data": STATUS}]
        assert hub.observer_count == 1

    @pytest.mark.asyncio
    async def test_attach_failure_not_registered(self, hub):
        await hub.attach(FakeObserver(fail=True))
        assert hub.observer_count == 0

    @pytest.mark.asyncio
    async def test_publish_reaches_all_open_observers(self, hub):
        a, b = FakeObserver(), FakeObserver()
        await hub.attach(a)
        await hub.attach(b)

        delivered = await hub.publish("typing", {"chatId": "1@c.us", "isTyping": True})

        assert delivered == 2
        for observer in (a, b):
            assert observer.frames()[-1] == {"type": "typing", "data": {"chatId": "1@c.us", "isTyping": True}}

    @pytest.mark.asyncio
    async def test_closed_observer_skipped(self, hub):
        open_, closed = FakeObserver(), FakeObserver()
        await hub.attach(open_)
        await hub.attach(closed)
        closed.client_state = WebSocketState.DISCONNECTED
        closed.send_text.reset_mock()

        assert await hub.publish("message", {"id": "x"}) == 1
        closed.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_send_detaches(self, hub):
        good, bad = FakeObserver(), FakeObserver()
        await hub.attach(good)
        await hub.attach(bad)
        bad.send_text.side_effect = RuntimeError("gone")

        assert await hub.publish("message", {"id": "x"}) == 1
        assert hub.observer_count == 1
        assert await hub.publish("message", {"id": "y"}) == 1

    @pytest.mark.asyncio
    async def test_stalled_observer_detached_after_send_timeout(self):
        hub = BroadcastHub(lambda: dict(STATUS), send_timeout=0.05)
        good, stalled = FakeObserver(), FakeObserver()
        await hub.attach(good)
        await hub.attach(stalled)

        async def hang(frame):
            await asyncio.sleep(3600)

        stalled.send_text.side_effect = hang

        delivered = await asyncio.wait_for(hub.publish("status", STATUS), timeout=1)

        assert delivered == 1
        assert hub.observer_count == 1
        assert await asyncio.wait_for(hub.publish("message", {"id": "x"}), timeout=1) == 1

    @pytest.mark.asyncio
    async def test_no_observers(self, hub):
        assert await hub.publish("status", STATUS) == 0

    @pytest.mark.asyncio
    async def test_per_observer_order(self, hub):
        observer = FakeObserver()
        await hub.attach(observer)
        await asyncio.gather(*[hub.publish("message", {"n": i}) for i in range(10)])
        assert [f["data"]["n"] for f in observer.frames()[1:]] == list(range(10))

    def test_detach_idempotent(self, hub):
        observer = FakeObserver()
        hub.detach(observer)
        hub.detach(observer)
        assert hub.observer_count == 0

    def test_event_types(self):
        assert set(EVENT_TYPES) == {
            "status", "message", "message_sent", "message_ack",
            "message_deleted", "typing", "chat_update",
        }


class TestEventPayloads:
    def test_message_payload_with_chat(self):
        message = SessionMessage(id="m1", chat_id="1-2@g.us", body="hi", timestamp=5)
        payload = events.message_payload(message, Chat(id="1-2@g.us", name="Team", is_group=True))
        assert payload["chatName"] == "Team"
        assert payload["isGroup"] is True

    def test_message_payload_without_chat(self):
        message = SessionMessage(id="m1", chat_id="1-2@g.us")
        payload = events.message_payload(message)
        assert payload["chatName"] is None
        assert payload["isGroup"] is True

    def test_ack_names(self):
        message = SessionMessage(id="m1", chat_id="1@c.us")
        names = [events.message_ack_payload(message, ack)["ackName"] for ack in (1, 2, 3, 4, 0)]
        assert names == ["sent", "delivered", "read", "played", "unknown"]


class TestWebSocketEndpoint:
    def test_status_on_connect(self, api_client):
        with api_client.websocket_connect("/") as ws:
            frame = ws.receive_json()
        assert frame["type"] == "status"
        assert frame["data"]["state"] == "initializing"

    def test_ws_alias_and_live_status(self, api_client, session):
        with api_client.websocket_connect("/ws") as ws:
            assert ws.receive_json()["type"] == "status"
            ws.send_text("ignored")
            api_client.portal.call(session.simulate_qr)
            frame = ws.receive_json()
        assert frame == {
            "type": "status",
            "data": {"connected": False, "hasQr": True, "hasPairingCode": False, "state": "awaiting_qr"},
        }

    def test_message_event_pushed(self, ready_client, session):
        session.add_chat("123@c.us", name="Bob")
        with ready_client.websocket_connect("/") as ws:
            assert ws.receive_json()["data"]["connected"] is True
            ready_client.portal.call(session.receive_message, "123@c.us", "ping")
            frame = ws.receive_json()
        assert frame["type"] == "message"
        assert frame["data"]["body"] == "ping"
        assert frame["data"]["chatName"] == "Bob"
