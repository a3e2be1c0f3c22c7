"""MessagingSession abstract interface.

The bridge never talks to a messaging network directly. It drives one
``MessagingSession``: a slow, stateful client that

* emits lifecycle and message events to registered listeners, and
* exposes high-latency async request methods (list chats, fetch messages,
  resolve contacts, send, group management).

Concrete sessions wrap a real chat client; ``InMemorySession`` implements the
same interface for development and tests.

Usage:
    session = InMemorySession()
    session.add_listener(on_event)
    await session.initialize()
    chats = await session.get_chats()
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union


class EventType(str, Enum):
    """Events a session delivers to its listeners.

    Attributes:
        QR: A pairing QR challenge is available (payload: ``qr``).
        AUTHENTICATED: Credentials were accepted.
        AUTH_FAILURE: Credentials were rejected (payload: ``reason``).
        READY: The session is fully synced and can serve requests.
        DISCONNECTED: The session dropped (payload: ``reason``).
        MESSAGE: An incoming message (payload: ``message``).
        MESSAGE_CREATE: Any message created, including our own (payload: ``message``).
        MESSAGE_ACK: Delivery state changed (payload: ``message``, ``ack``).
        MESSAGE_REVOKED: A message was deleted for everyone
            (payload: ``message``, ``revoked``).
        TYPING: Typing indicator (payload: ``chat_id``, ``is_typing``).
        CHAT_UNREAD: A chat's unread count changed (payload: ``chat_id``, ``unread_count``).
    """
    QR = "qr"
    AUTHENTICATED = "authenticated"
    AUTH_FAILURE = "auth_failure"
    READY = "ready"
    DISCONNECTED = "disconnected"
    MESSAGE = "message"
    MESSAGE_CREATE = "message_create"
    MESSAGE_ACK = "message_ack"
    MESSAGE_REVOKED = "message_revoke_everyone"
    TYPING = "typing"
    CHAT_UNREAD = "chat_unread"


@dataclass
class SessionEvent:
    """A single event emitted by a session."""
    type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Participant:
    id: str
    is_admin: bool = False
    is_super_admin: bool = False


@dataclass
class Contact:
    """Contact record as the session knows it.

    Attributes:
        id: Participant identifier (``<digits>@c.us``).
        pushname: Name the user set for themselves; present even for non-contacts.
        name: Name saved in the address book.
        short_name: Short form of the saved name.
    """
    id: str
    pushname: Optional[str] = None
    name: Optional[str] = None
    short_name: Optional[str] = None


@dataclass
class SessionMessage:
    """A raw message as returned by the session.

    Attributes:
        id: Serialized message id.
        chat_id: Chat the message belongs to.
        sender: ``from`` field (chat id for incoming, own id for outgoing).
        to: Recipient field.
        author: Group member who wrote the message (groups only).
        notify_name: Sender's self-declared name attached to the message.
        quoted_message_id: Id of the message this one replies to.
    """
    id: str
    chat_id: str
    body: str = ""
    from_me: bool = False
    timestamp: int = 0
    type: str = "chat"
    has_media: bool = False
    sender: str = ""
    to: str = ""
    author: Optional[str] = None
    notify_name: Optional[str] = None
    mentioned_ids: List[str] = field(default_factory=list)
    quoted_message_id: Optional[str] = None

    @property
    def has_quoted_msg(self) -> bool:
        return self.quoted_message_id is not None


@dataclass
class Chat:
    id: str
    name: str = ""
    is_group: bool = False
    unread_count: int = 0
    unread_mention_count: int = 0
    timestamp: int = 0
    last_message: Optional[SessionMessage] = None
    participants: List[Participant] = field(default_factory=list)
    description: Optional[str] = None
    owner: Optional[str] = None
    created_at: Optional[int] = None
    is_read_only: bool = False
    is_muted: bool = False
    mute_expiration: Optional[int] = None


@dataclass
class MediaPayload:
    """Base64 media content (no ``data:`` URL prefix)."""
    mimetype: str
    data: str
    filename: Optional[str] = None


EventListener = Callable[[SessionEvent], Awaitable[None]]


class MessagingSession(ABC):
    """Abstract base class for messaging client sessions.

    Listeners registered with ``add_listener`` receive every event; the
    bridge registers exactly one. All request methods may be slow and may
    raise arbitrary exceptions; callers are expected to guard them.
    """

    def __init__(self) -> None:
        self._listeners: List[EventListener] = []

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def emit(self, event_type: EventType, **payload: Any) -> None:
        """Deliver an event to every listener, in registration order."""
        event = SessionEvent(type=event_type, payload=payload)
        for listener in list(self._listeners):
            await listener(event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def initialize(self) -> None:
        """Run the connect sequence; progress is reported through events."""

    @abstractmethod
    async def destroy(self) -> None:
        """Tear the session down. Must be safe to call more than once."""

    @abstractmethod
    async def request_pairing_code(self, phone_number: str) -> str:
        """Request a pairing code for a digits-only phone number."""

    # ------------------------------------------------------------------
    # Chats and messages
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_chats(self) -> List[Chat]:
        """Return every chat known to the session."""

    @abstractmethod
    async def get_chat_by_id(self, chat_id: str) -> Optional[Chat]:
        """Return one chat, or ``None`` if unknown."""

    @abstractmethod
    async def sync_history(self, chat_id: str) -> bool:
        """Ask the session to load older history for *chat_id*."""

    @abstractmethod
    async def fetch_messages(self, chat_id: str, limit: int) -> List[SessionMessage]:
        """Return up to *limit* most recent loaded messages, oldest first."""

    @abstractmethod
    async def get_quoted_message(self, message: SessionMessage) -> Optional[SessionMessage]:
        """Return the message *message* replies to, if any."""

    @abstractmethod
    async def send_message(
        self,
        chat_id: str,
        content: Union[str, MediaPayload],
        quoted_message_id: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> SessionMessage:
        """Send text or media to a chat and return the created message."""

    @abstractmethod
    async def send_seen(self, chat_id: str) -> bool:
        """Mark every message in *chat_id* as read."""

    @abstractmethod
    async def search_messages(
        self, query: str, chat_id: Optional[str] = None, limit: int = 20
    ) -> List[SessionMessage]:
        """Full-text search across one chat or all chats."""

    @abstractmethod
    async def download_media(self, message: SessionMessage) -> Optional[MediaPayload]:
        """Download a message's media, or ``None`` if it is gone."""

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_contact_by_id(self, contact_id: str) -> Contact:
        """Resolve a participant identifier to a contact record."""

    @abstractmethod
    async def get_profile_pic_url(self, contact_id: str) -> Optional[str]:
        """Return the public profile picture URL, or ``None``."""

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_invite_code(self, chat_id: str) -> Optional[str]:
        """Return the group's invite code."""

    @abstractmethod
    async def leave_group(self, chat_id: str) -> None:
        """Leave the group."""

    @abstractmethod
    async def add_participants(self, chat_id: str, participant_ids: List[str]) -> Dict[str, Any]:
        """Add members; returns a per-participant result map."""

    @abstractmethod
    async def remove_participants(self, chat_id: str, participant_ids: List[str]) -> Dict[str, Any]:
        """Remove members; returns a per-participant result map."""

    @abstractmethod
    async def promote_participants(self, chat_id: str, participant_ids: List[str]) -> Dict[str, Any]:
        """Grant admin rights."""

    @abstractmethod
    async def demote_participants(self, chat_id: str, participant_ids: List[str]) -> Dict[str, Any]:
        """Revoke admin rights."""

    @abstractmethod
    async def set_group_subject(self, chat_id: str, subject: str) -> None:
        """Rename the group."""

    @abstractmethod
    async def set_group_description(self, chat_id: str, description: str) -> None:
        """Replace the group description."""
