"""Broadcast hub for WebSocket observers.

Every session event the bridge forwards is fanned out to all attached
WebSocket connections as ``{"type": ..., "data": ...}``. Delivery is
best-effort: observers whose socket is not open are skipped, a send that
fails or exceeds ``send_timeout`` detaches the observer, and nothing is
queued or replayed.

Ordering:
    Publishes are serialized by a lock, so a single observer always receives
    events in the order ``publish`` was called. Sends within one publish run
    concurrently with ``asyncio.gather()``; there is no ordering between
    observers.

Late joiners:
    ``attach`` immediately sends a ``status`` snapshot so a client that
    connects after the session became ready still knows the current state.
"""
import asyncio
import json
import logging
from typing import Any, Callable, List, Set

from starlette.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)

# Event types pushed to observers
STATUS = "status"
MESSAGE = "message"
MESSAGE_SENT = "message_sent"
MESSAGE_ACK = "message_ack"
MESSAGE_DELETED = "message_deleted"
TYPING = "typing"
CHAT_UPDATE = "chat_update"

EVENT_TYPES = (STATUS, MESSAGE, MESSAGE_SENT, MESSAGE_ACK, MESSAGE_DELETED, TYPING, CHAT_UPDATE)


def _is_open(observer: WebSocket) -> bool:
    return (
        getattr(observer, "client_state", None) == WebSocketState.CONNECTED
        and getattr(observer, "application_state", WebSocketState.CONNECTED) == WebSocketState.CONNECTED
    )


class BroadcastHub:
    """Fan-out dispatcher for attached WebSocket observers.

    Args:
        status_provider: Zero-argument callable returning the current status
            payload (``SessionStateStore.snapshot``).
        send_timeout: Seconds a single send may take before the observer is
            treated as dead.
    """

    def __init__(self, status_provider: Callable[[], dict], send_timeout: float = 5.0) -> None:
        self._status_provider = status_provider
        self._send_timeout = send_timeout
        self._observers: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    async def attach(self, observer: WebSocket) -> None:
        """Register an observer and send it the current status."""
        async with self._lock:
            self._observers.add(observer)
            frame = self._encode(STATUS, self._status_provider())
            if not await self._safe_send(observer, frame):
                self._observers.discard(observer)
        logger.info("[Hub] Observer attached (%d total)", len(self._observers))

    def detach(self, observer: WebSocket) -> None:
        """Remove an observer. Safe to call more than once."""
        if observer in self._observers:
            self._observers.discard(observer)
            logger.info("[Hub] Observer detached (%d total)", len(self._observers))

    async def publish(self, event_type: str, payload: Any) -> int:
        """Send one event to every open observer.

        Returns:
            Number of observers the event was delivered to.
        """
        frame = self._encode(event_type, payload)
        async with self._lock:
            targets: List[WebSocket] = [o for o in self._observers if _is_open(o)]
            if not targets:
                return 0

            results = await asyncio.gather(
                *[self._safe_send(o, frame) for o in targets],
                return_exceptions=True,
            )

            delivered = 0
            for observer, ok in zip(targets, results):
                if ok is True:
                    delivered += 1
                else:
                    self._observers.discard(observer)
                    logger.debug("[Hub] Removed dead observer")
        logger.debug("[Hub] %s delivered to %d observer(s)", event_type, delivered)
        return delivered

    @staticmethod
    def _encode(event_type: str, payload: Any) -> str:
        return json.dumps({"type": event_type, "data": payload}, default=str)

    async def _safe_send(self, observer: WebSocket, frame: str) -> bool:
        try:
            await asyncio.wait_for(observer.send_text(frame), timeout=self._send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("[Hub] Send timed out after %ss; dropping observer", self._send_timeout)
            return False
        except Exception as e:
            logger.debug(f"Failed to send to observer: {e}")
            return False
