"""In-memory messaging session for development and testing.

``InMemorySession`` implements ``MessagingSession`` without any network.
Chats, contacts and messages are seeded through helper methods, and the
session can be told to be slow or to fail so the bridge's timeout, caching
and degradation paths can be exercised deterministically.

Every request method records how often it was called and how many calls
were in flight at once (``calls``, ``in_flight``, ``max_in_flight``).

Lifecycle is driven either automatically (``auto_ready=True`` emits
``qr → authenticated → ready`` from ``initialize``) or by hand through the
``simulate_*`` helpers.
"""
import asyncio
import logging
import time
import uuid
import zlib
from collections import Counter
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional, Set, Union

from .base import (
    Chat,
    Contact,
    EventType,
    MediaPayload,
    MessagingSession,
    Participant,
    SessionMessage,
)

logger = logging.getLogger(__name__)

DEFAULT_SELF_ID = "10000000000@c.us"
DEFAULT_QR_PAYLOAD = "2@in-memory-session-qr"


class InMemorySession(MessagingSession):
    """Deterministic ``MessagingSession`` backed by plain dicts.

    Args:
        latency: Default delay in seconds applied to every request method.
        auto_ready: Emit ``qr``, ``authenticated`` and ``ready`` from
            ``initialize``.
        self_id: Identifier used as the sender of our own messages.
        qr_payload: Challenge payload emitted on ``qr``.
    """

    def __init__(
        self,
        latency: float = 0.0,
        auto_ready: bool = True,
        self_id: str = DEFAULT_SELF_ID,
        qr_payload: str = DEFAULT_QR_PAYLOAD,
    ) -> None:
        super().__init__()
        self.latency = latency
        self.auto_ready = auto_ready
        self.self_id = self_id
        self.qr_payload = qr_payload

        self.chats: Dict[str, Chat] = {}
        self.messages: Dict[str, List[SessionMessage]] = {}
        self.contacts: Dict[str, Contact] = {}
        self.profile_pics: Dict[str, Optional[str]] = {}
        self.media: Dict[str, MediaPayload] = {}
        self.invite_codes: Dict[str, str] = {}
        self.seen: Set[str] = set()

        # method name -> delay override / exception to raise
        self.delays: Dict[str, float] = {}
        self.failures: Dict[str, Exception] = {}
        # contact ids whose lookup raises
        self.failing_contacts: Set[str] = set()

        self.calls: Counter = Counter()
        self.in_flight: Counter = Counter()
        self.max_in_flight: Counter = Counter()

        self.initialized = False
        self.destroyed = False

    @asynccontextmanager
    async def _call(self, name: str):
        self.calls[name] += 1
        self.in_flight[name] += 1
        self.max_in_flight[name] = max(self.max_in_flight[name], self.in_flight[name])
        try:
            delay = self.delays.get(name, self.latency)
            if delay:
                await asyncio.sleep(delay)
            failure = self.failures.get(name)
            if failure is not None:
                raise failure
            yield
        finally:
            self.in_flight[name] -= 1

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------

    def add_chat(
        self,
        chat_id: str,
        name: str = "",
        is_group: bool = False,
        participants: Iterable[Union[str, Participant]] = (),
        unread_count: int = 0,
        **extra: Any,
    ) -> Chat:
        members = [
            p if isinstance(p, Participant) else Participant(id=p)
            for p in participants
        ]
        chat = Chat(
            id=chat_id,
            name=name or chat_id.split("@")[0],
            is_group=is_group,
            unread_count=unread_count,
            participants=members,
            **extra,
        )
        self.chats[chat_id] = chat
        self.messages.setdefault(chat_id, [])
        return chat

    def add_contact(
        self,
        contact_id: str,
        pushname: Optional[str] = None,
        name: Optional[str] = None,
        short_name: Optional[str] = None,
        profile_pic: Optional[str] = None,
    ) -> Contact:
        contact = Contact(id=contact_id, pushname=pushname, name=name, short_name=short_name)
        self.contacts[contact_id] = contact
        if profile_pic is not None:
            self.profile_pics[contact_id] = profile_pic
        return contact

    def add_message(
        self,
        chat_id: str,
        body: str = "",
        timestamp: Optional[int] = None,
        from_me: bool = False,
        author: Optional[str] = None,
        media: Optional[MediaPayload] = None,
        **fields: Any,
    ) -> SessionMessage:
        """Append a message to a chat's history without emitting events."""
        if chat_id not in self.chats:
            self.add_chat(chat_id, is_group=chat_id.endswith("@g.us"))
        history = self.messages[chat_id]
        if timestamp is None:
            last = history[-1].timestamp if history else 0
            timestamp = max(int(time.time()), last + 1)
        message = SessionMessage(
            id=fields.pop("id", None) or f"{str(from_me).lower()}_{chat_id}_{uuid.uuid4().hex[:16].upper()}",
            chat_id=chat_id,
            body=body,
            from_me=from_me,
            timestamp=timestamp,
            author=author,
            sender=self.self_id if from_me else (author or chat_id),
            to=chat_id if from_me else self.self_id,
            has_media=media is not None,
            **fields,
        )
        if media is not None:
            self.media[message.id] = media
        history.append(message)
        history.sort(key=lambda m: m.timestamp)

        chat = self.chats[chat_id]
        if chat.last_message is None or message.timestamp >= chat.timestamp:
            chat.last_message = message
            chat.timestamp = message.timestamp
        return message

    def _find_message(self, message_id: str) -> Optional[SessionMessage]:
        for history in self.messages.values():
            for message in history:
                if message.id == message_id:
                    return message
        return None

    # ------------------------------------------------------------------
    # Lifecycle simulation
    # ------------------------------------------------------------------

    async def simulate_qr(self, payload: Optional[str] = None) -> None:
        await self.emit(EventType.QR, qr=payload or self.qr_payload)

    async def simulate_ready(self) -> None:
        await self.emit(EventType.AUTHENTICATED)
        await self.emit(EventType.READY)

    async def simulate_auth_failure(self, reason: str = "auth failure") -> None:
        await self.emit(EventType.AUTH_FAILURE, reason=reason)

    async def simulate_disconnect(self, reason: str = "NAVIGATION") -> None:
        await self.emit(EventType.DISCONNECTED, reason=reason)

    async def receive_message(self, chat_id: str, body: str, **fields: Any) -> SessionMessage:
        """Append an incoming message and emit ``message`` + ``message_create``."""
        message = self.add_message(chat_id, body, **fields)
        if not message.from_me:
            self.chats[chat_id].unread_count += 1
        await self.emit(EventType.MESSAGE, message=message)
        await self.emit(EventType.MESSAGE_CREATE, message=message)
        return message

    # ------------------------------------------------------------------
    # MessagingSession implementation
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        async with self._call("initialize"):
            self.initialized = True
        logger.info("[InMemorySession] initialized (auto_ready=%s)", self.auto_ready)
        if self.auto_ready:
            await self.simulate_qr()
            await self.simulate_ready()

    async def destroy(self) -> None:
        self.destroyed = True
        self._listeners.clear()

    async def request_pairing_code(self, phone_number: str) -> str:
        async with self._call("request_pairing_code"):
            return f"{zlib.crc32(phone_number.encode()) % 10**8:08d}"

    async def get_chats(self) -> List[Chat]:
        async with self._call("get_chats"):
            return list(self.chats.values())

    async def get_chat_by_id(self, chat_id: str) -> Optional[Chat]:
        async with self._call("get_chat_by_id"):
            return self.chats.get(chat_id)

    async def sync_history(self, chat_id: str) -> bool:
        async with self._call("sync_history"):
            return chat_id in self.chats

    async def fetch_messages(self, chat_id: str, limit: int) -> List[SessionMessage]:
        async with self._call("fetch_messages"):
            history = self.messages.get(chat_id, [])
            return list(history[-limit:]) if limit > 0 else []

    async def get_quoted_message(self, message: SessionMessage) -> Optional[SessionMessage]:
        async with self._call("get_quoted_message"):
            if not message.quoted_message_id:
                return None
            return self._find_message(message.quoted_message_id)

    async def send_message(
        self,
        chat_id: str,
        content: Union[str, MediaPayload],
        quoted_message_id: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> SessionMessage:
        async with self._call("send_message"):
            if chat_id not in self.chats:
                raise LookupError(f"Unknown chat {chat_id}")
            if isinstance(content, MediaPayload):
                message = self.add_message(
                    chat_id,
                    caption or "",
                    from_me=True,
                    media=content,
                    type=_media_kind(content.mimetype),
                    quoted_message_id=quoted_message_id,
                )
            else:
                message = self.add_message(
                    chat_id, content, from_me=True, quoted_message_id=quoted_message_id
                )
        await self.emit(EventType.MESSAGE_CREATE, message=message)
        return message

    async def send_seen(self, chat_id: str) -> bool:
        async with self._call("send_seen"):
            chat = self.chats.get(chat_id)
            if chat is None:
                raise LookupError(f"Unknown chat {chat_id}")
            chat.unread_count = 0
            chat.unread_mention_count = 0
            self.seen.add(chat_id)
            return True

    async def search_messages(
        self, query: str, chat_id: Optional[str] = None, limit: int = 20
    ) -> List[SessionMessage]:
        async with self._call("search_messages"):
            needle = query.lower()
            pools = [self.messages.get(chat_id, [])] if chat_id else list(self.messages.values())
            found = [m for pool in pools for m in pool if needle in m.body.lower()]
            found.sort(key=lambda m: m.timestamp, reverse=True)
            return found[:limit]

    async def download_media(self, message: SessionMessage) -> Optional[MediaPayload]:
        async with self._call("download_media"):
            return self.media.get(message.id)

    async def get_contact_by_id(self, contact_id: str) -> Contact:
        async with self._call("get_contact_by_id"):
            if contact_id in self.failing_contacts:
                raise LookupError(f"Contact lookup failed for {contact_id}")
            return self.contacts.get(contact_id) or Contact(id=contact_id)

    async def get_profile_pic_url(self, contact_id: str) -> Optional[str]:
        async with self._call("get_profile_pic_url"):
            return self.profile_pics.get(contact_id)

    def _group(self, chat_id: str) -> Chat:
        chat = self.chats.get(chat_id)
        if chat is None or not chat.is_group:
            raise LookupError(f"Unknown group {chat_id}")
        return chat

    async def get_invite_code(self, chat_id: str) -> Optional[str]:
        async with self._call("get_invite_code"):
            self._group(chat_id)
            return self.invite_codes.setdefault(chat_id, uuid.uuid4().hex[:22])

    async def leave_group(self, chat_id: str) -> None:
        async with self._call("leave_group"):
            chat = self._group(chat_id)
            chat.participants = [p for p in chat.participants if p.id != self.self_id]
            chat.is_read_only = True

    async def add_participants(self, chat_id: str, participant_ids: List[str]) -> Dict[str, Any]:
        async with self._call("add_participants"):
            chat = self._group(chat_id)
            existing = {p.id for p in chat.participants}
            result = {}
            for pid in participant_ids:
                if pid in existing:
                    result[pid] = {"code": 409, "message": "already a participant"}
                    continue
                chat.participants.append(Participant(id=pid))
                result[pid] = {"code": 200, "message": "added"}
            return result

    async def remove_participants(self, chat_id: str, participant_ids: List[str]) -> Dict[str, Any]:
        async with self._call("remove_participants"):
            chat = self._group(chat_id)
            wanted = set(participant_ids)
            before = {p.id for p in chat.participants}
            chat.participants = [p for p in chat.participants if p.id not in wanted]
            return {
                pid: {"code": 200 if pid in before else 404}
                for pid in participant_ids
            }

    async def _set_admin(self, chat_id: str, participant_ids: List[str], value: bool) -> Dict[str, Any]:
        chat = self._group(chat_id)
        wanted = set(participant_ids)
        for p in chat.participants:
            if p.id in wanted:
                p.is_admin = value
        return {"status": 200}

    async def promote_participants(self, chat_id: str, participant_ids: List[str]) -> Dict[str, Any]:
        async with self._call("promote_participants"):
            return await self._set_admin(chat_id, participant_ids, True)

    async def demote_participants(self, chat_id: str, participant_ids: List[str]) -> Dict[str, Any]:
        async with self._call("demote_participants"):
            return await self._set_admin(chat_id, participant_ids, False)

    async def set_group_subject(self, chat_id: str, subject: str) -> None:
        async with self._call("set_group_subject"):
            self._group(chat_id).name = subject

    async def set_group_description(self, chat_id: str, description: str) -> None:
        async with self._call("set_group_description"):
            self._group(chat_id).description = description


def _media_kind(mimetype: str) -> str:
    major = mimetype.split("/", 1)[0]
    if major in ("image", "video", "audio"):
        return major
    return "document"
