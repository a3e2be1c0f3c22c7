"""Session lifecycle manager.

``SessionManager`` owns the one messaging session of the process. It creates
the session through the configured factory, translates the session's events
into ``SessionStateStore`` transitions and broadcast frames, and reconnects
after a disconnect.

Lifecycle:
    initialize() ─► begin() ─► session.initialize() (background)
        qr            ─► awaiting_qr, status broadcast
        authenticated ─► authenticated
        ready         ─► ready, status broadcast
        auth_failure  ─► session dropped and destroyed, status broadcast, no retry
        disconnected  ─► session dropped and destroyed, status broadcast,
                         one reconnect scheduled after ``reconnect_delay``

Each listener is bound to the session it was registered on. Events coming
from a session that is no longer the owned one are ignored, so a late
``ready`` from a dropped session cannot mark the new one ready.
"""
import asyncio
import functools
import logging
from typing import Optional

from chatbridge.broadcast import BroadcastHub
from chatbridge.broadcast import events as ev
from chatbridge.broadcast import hub as frames
from chatbridge.cache import CacheRegistry
from chatbridge.config import MessageSettings, SessionSettings
from chatbridge.contacts import ContactResolver
from chatbridge.errors import (
    AlreadyConnectedError,
    InvalidInputError,
    UpstreamFailureError,
)
from chatbridge.identifiers import GROUP_SUFFIX, digits_only, mask_phone
from chatbridge.session import EventType, MessagingSession, SessionEvent, SessionFactory
from chatbridge.upstream import call_upstream, with_timeout

from .state import ConnectionState, SessionStateStore

logger = logging.getLogger(__name__)

MIN_PHONE_DIGITS = 10


class SessionManager:
    """Creates, watches and recreates the messaging session.

    Args:
        store: Process-wide connection state.
        hub: Broadcast hub for status and message events.
        caches: Cache namespaces invalidated by session events.
        resolver: Contact resolver fed with names seen on live messages.
        session_factory: Zero-argument callable returning a new session.
        settings: Reconnect delay and pairing timeout.
        message_settings: Deadline for the chat lookup made per live message.
    """

    def __init__(
        self,
        store: SessionStateStore,
        hub: BroadcastHub,
        caches: CacheRegistry,
        resolver: ContactResolver,
        session_factory: SessionFactory,
        settings: Optional[SessionSettings] = None,
        message_settings: Optional[MessageSettings] = None,
    ) -> None:
        self._store = store
        self._hub = hub
        self._caches = caches
        self._resolver = resolver
        self._session_factory = session_factory
        self._settings = settings or SessionSettings()
        self._message_settings = message_settings or MessageSettings()

        self._connect_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._reconnect_attempts = 0
        self._closing = False

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> MessagingSession:
        """Return the owned session, creating and connecting one if needed.

        The session's own connect sequence runs in the background; its
        progress arrives as events.
        """
        if self._store.session is not None:
            return self._store.session

        self._closing = False
        session = self._session_factory()
        session.add_listener(functools.partial(self._handle_event, session))
        if not self._store.begin(session):
            # Only reachable if the store was left in a non-disconnected
            # state without a session; reset it so the new session can start.
            self._store.mark_disconnected()
            self._store.begin(session)

        logger.info("[Session] Initializing %s", type(session).__name__)
        await self._publish_status()
        self._connect_task = asyncio.create_task(self._connect(session))
        return session

    async def shutdown(self) -> None:
        """Cancel pending work and destroy the owned session."""
        self._closing = True
        for task in (self._reconnect_task, self._connect_task):
            if task is not None and not task.done():
                task.cancel()
        self._reconnect_task = None
        self._connect_task = None

        dropped = self._store.mark_disconnected()
        if dropped is not None:
            await self._destroy(dropped)
        logger.info("[Session] Shut down")

    async def request_pairing_code(self, phone_number: str) -> str:
        """Request a phone-number pairing code from the session.

        Allowed in every state except ``ready``. When no session is owned
        (after an auth failure, or while a reconnect is pending) a fresh one
        is created first.

        Raises:
            AlreadyConnectedError: The session is already ready.
            InvalidInputError: The number has fewer than ten digits, or the
                session left the pairing states while the code was requested.
            UpstreamTimeoutError, UpstreamFailureError: The session call failed.
        """
        store = self._store
        if store.state == ConnectionState.READY:
            raise AlreadyConnectedError()

        digits = digits_only(phone_number or "")
        if len(digits) < MIN_PHONE_DIGITS:
            raise InvalidInputError("Invalid phone number. Include country code (e.g., 5491112345678)")

        session = store.session
        if session is None:
            if self._reconnect_task is not None and not self._reconnect_task.done():
                self._reconnect_task.cancel()
                self._reconnect_task = None
            session = await self.initialize()

        logger.info("[Session] Requesting pairing code for %s", mask_phone(digits))
        code = await call_upstream(
            session.request_pairing_code(digits),
            seconds=self._settings.pairing_timeout_seconds,
            error_prefix="Failed to request pairing code: ",
        )

        # The session may have changed state while we waited
        if session is not store.session:
            raise UpstreamFailureError("Session was replaced while requesting a pairing code")
        if not store.set_pairing_code(code):
            if store.state == ConnectionState.READY:
                raise AlreadyConnectedError()
            raise InvalidInputError(f"Cannot request a pairing code while {store.state.value}")

        await self._publish_status()
        return code

    # ------------------------------------------------------------------
    # Internal: connect / reconnect
    # ------------------------------------------------------------------

    async def _connect(self, session: MessagingSession) -> None:
        try:
            await session.initialize()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("[Session] Initialization failed: %s", exc)
            if session is self._store.session:
                await self._handle_disconnect(f"initialize failed: {exc}")

    def _schedule_reconnect(self) -> None:
        if self._closing or self.reconnect_pending:
            return
        self._reconnect_attempts += 1
        delay = self._settings.reconnect_delay_seconds
        logger.info(
            "[Session] Reconnecting in %ss (attempt %d)", delay, self._reconnect_attempts
        )
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after(delay, self._reconnect_attempts)
        )

    async def _reconnect_after(self, delay: float, attempt: int) -> None:
        await asyncio.sleep(delay)
        self._reconnect_task = None
        logger.info("[Session] Reconnect attempt %d", attempt)
        try:
            await self.initialize()
        except Exception as exc:
            logger.error("[Session] Reconnect attempt %d failed: %s", attempt, exc)
            self._schedule_reconnect()

    async def _handle_disconnect(self, reason: str) -> None:
        dropped = self._store.mark_disconnected()
        logger.warning("[Session] Disconnected: %s", reason)
        await self._publish_status()
        if dropped is not None:
            await self._destroy(dropped)
        self._schedule_reconnect()

    async def _destroy(self, session: MessagingSession) -> None:
        try:
            await session.destroy()
        except Exception as exc:
            logger.warning("[Session] Error destroying session: %s", exc)

    async def _publish_status(self) -> None:
        await self._hub.publish(frames.STATUS, self._store.snapshot())

    # ------------------------------------------------------------------
    # Internal: event handling
    # ------------------------------------------------------------------

    async def _handle_event(self, session: MessagingSession, event: SessionEvent) -> None:
        if session is not self._store.session:
            logger.debug("[Session] Ignoring %s from a stale session", event.type.value)
            return

        payload = event.payload
        etype = event.type

        if etype == EventType.QR:
            logger.info("[Session] QR code received")
            if self._store.set_qr(payload.get("qr")):
                await self._publish_status()

        elif etype == EventType.AUTHENTICATED:
            logger.info("[Session] Authenticated")
            if self._store.mark_authenticated():
                await self._publish_status()

        elif etype == EventType.READY:
            logger.info("[Session] Client is ready")
            if self._store.mark_ready():
                self._reconnect_attempts = 0
                await self._publish_status()

        elif etype == EventType.AUTH_FAILURE:
            # No automatic retry; the next initialize() (e.g. from a
            # pairing-code request) starts a fresh session.
            logger.error("[Session] Auth failure: %s", payload.get("reason"))
            dropped = self._store.mark_disconnected()
            await self._publish_status()
            if dropped is not None:
                await self._destroy(dropped)

        elif etype == EventType.DISCONNECTED:
            await self._handle_disconnect(str(payload.get("reason", "unknown")))

        elif etype == EventType.MESSAGE:
            await self._on_message(session, payload["message"])

        elif etype == EventType.MESSAGE_CREATE:
            message = payload["message"]
            if message.from_me:
                self._caches.stats.clear()
                await self._hub.publish(frames.MESSAGE_SENT, ev.message_sent_payload(message))

        elif etype == EventType.MESSAGE_ACK:
            await self._hub.publish(
                frames.MESSAGE_ACK, ev.message_ack_payload(payload["message"], payload.get("ack", 0))
            )

        elif etype == EventType.MESSAGE_REVOKED:
            await self._hub.publish(
                frames.MESSAGE_DELETED,
                ev.message_deleted_payload(payload["message"], payload.get("revoked")),
            )

        elif etype == EventType.TYPING:
            await self._hub.publish(
                frames.TYPING, ev.typing_payload(payload["chat_id"], bool(payload.get("is_typing")))
            )

        elif etype == EventType.CHAT_UNREAD:
            self._caches.stats.clear()
            await self._hub.publish(
                frames.CHAT_UPDATE,
                ev.chat_update_payload(payload["chat_id"], int(payload.get("unread_count", 0))),
            )

    async def _on_message(self, session: MessagingSession, message) -> None:
        self._caches.stats.clear()

        chat = None
        try:
            chat = await with_timeout(
                session.get_chat_by_id(message.chat_id),
                self._message_settings.chat_lookup_timeout_seconds,
                "Timeout getting chat",
            )
        except Exception as exc:
            logger.debug("[Session] Chat lookup for live message failed: %s", exc)

        is_group = chat.is_group if chat is not None else message.chat_id.endswith(GROUP_SUFFIX)
        if is_group and message.author and message.notify_name:
            if self._resolver.remember_name(message.author, message.notify_name):
                logger.debug("[Session] Cached name from live message for %s", message.author)

        await self._hub.publish(frames.MESSAGE, ev.message_payload(message, chat))
