"""Connection state store.

One ``SessionStateStore`` exists per process. It holds the current
``ConnectionState``, the latest QR payload or pairing code, and the owned
session handle, and it is the only place those values change. Components
receive the store by reference instead of reading module globals.

Transitions are monotonic within a session::

    initializing -> {awaiting_qr | awaiting_pairing_code | authenticated} -> ready

``disconnected`` is reachable from anywhere and only ``initializing`` may
follow it. Illegal transitions are logged and ignored.
"""
import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional

from chatbridge.session import MessagingSession

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle state of the messaging session."""
    DISCONNECTED = "disconnected"
    INITIALIZING = "initializing"
    AWAITING_QR = "awaiting_qr"
    AWAITING_PAIRING_CODE = "awaiting_pairing_code"
    AUTHENTICATED = "authenticated"
    READY = "ready"


_PAIRING_STATES = frozenset({
    ConnectionState.AWAITING_QR,
    ConnectionState.AWAITING_PAIRING_CODE,
    ConnectionState.AUTHENTICATED,
    ConnectionState.READY,
})

# current state -> states it may move to (besides DISCONNECTED)
_TRANSITIONS: Dict[ConnectionState, FrozenSet[ConnectionState]] = {
    ConnectionState.DISCONNECTED: frozenset({ConnectionState.INITIALIZING}),
    ConnectionState.INITIALIZING: _PAIRING_STATES,
    ConnectionState.AWAITING_QR: _PAIRING_STATES,
    ConnectionState.AWAITING_PAIRING_CODE: _PAIRING_STATES,
    ConnectionState.AUTHENTICATED: frozenset({ConnectionState.READY}),
    ConnectionState.READY: frozenset(),
}


class SessionStateStore:
    """Process-wide connection state with explicit transition methods."""

    def __init__(self) -> None:
        self.state: ConnectionState = ConnectionState.DISCONNECTED
        self.session: Optional[MessagingSession] = None
        self.qr: Optional[str] = None
        self.pairing_code: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.state == ConnectionState.READY and self.session is not None

    def can_transition(self, target: ConnectionState) -> bool:
        if target == ConnectionState.DISCONNECTED:
            return True
        return target in _TRANSITIONS[self.state]

    def _move(self, target: ConnectionState) -> bool:
        if not self.can_transition(target):
            logger.warning(
                "[State] Ignoring illegal transition %s -> %s",
                self.state.value, target.value,
            )
            return False
        if target != self.state:
            logger.info("[State] %s -> %s", self.state.value, target.value)
        self.state = target
        return True

    def begin(self, session: MessagingSession) -> bool:
        """Adopt a freshly created session and enter ``initializing``."""
        if not self._move(ConnectionState.INITIALIZING):
            return False
        self.session = session
        self.qr = None
        self.pairing_code = None
        return True

    def set_qr(self, payload: str) -> bool:
        if not self._move(ConnectionState.AWAITING_QR):
            return False
        self.qr = payload
        self.pairing_code = None
        return True

    def set_pairing_code(self, code: str) -> bool:
        if not self._move(ConnectionState.AWAITING_PAIRING_CODE):
            return False
        self.pairing_code = code
        self.qr = None
        return True

    def mark_authenticated(self) -> bool:
        if not self._move(ConnectionState.AUTHENTICATED):
            return False
        self.qr = None
        self.pairing_code = None
        return True

    def mark_ready(self) -> bool:
        if not self._move(ConnectionState.READY):
            return False
        self.qr = None
        self.pairing_code = None
        return True

    def mark_disconnected(self) -> Optional[MessagingSession]:
        """Enter ``disconnected``, clear transient data and drop the session.

        Returns:
            The session that was dropped, if any.
        """
        self._move(ConnectionState.DISCONNECTED)
        self.qr = None
        self.pairing_code = None
        dropped, self.session = self.session, None
        return dropped

    def snapshot(self) -> dict:
        """Status payload served by ``GET /api/status`` and ``status`` events."""
        return {
            "connected": self.is_ready,
            "hasQr": self.qr is not None,
            "hasPairingCode": self.pairing_code is not None,
            "state": self.state.value,
        }
