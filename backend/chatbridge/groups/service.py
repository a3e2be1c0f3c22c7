"""Group detail and administration.

Every operation first resolves the chat and rejects non-group chats with a
400. Participant identifiers given as bare phone numbers are normalized to
``<digits>@c.us`` before they reach the session.
"""
import logging
from typing import Any, Dict, List, Optional

from chatbridge.config import ContactSettings
from chatbridge.connection.state import SessionStateStore
from chatbridge.contacts import ContactResolver
from chatbridge.errors import ChatUnavailableError, InvalidInputError, NotReadyError
from chatbridge.identifiers import normalize_participant_ids
from chatbridge.session import Chat, MessagingSession
from chatbridge.upstream import call_upstream

from .schemas import GroupDetail, GroupParticipant, InviteCodeResponse

logger = logging.getLogger(__name__)

INVITE_LINK_BASE = "https://chat.whatsapp.com/"


class GroupService:
    """Group operations backed by the owned session."""

    def __init__(
        self,
        store: SessionStateStore,
        resolver: ContactResolver,
        settings: Optional[ContactSettings] = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._settings = settings or ContactSettings()

    def _session(self) -> MessagingSession:
        session = self._store.session
        if session is None or not self._store.is_ready:
            raise NotReadyError()
        return session

    async def _group(self, session: MessagingSession, chat_id: str) -> Chat:
        chat = await call_upstream(session.get_chat_by_id(chat_id))
        if chat is None:
            raise ChatUnavailableError("Chat not found")
        if not chat.is_group:
            raise InvalidInputError("Not a group chat")
        return chat

    async def get_group(self, chat_id: str, fetch_names: bool = False) -> GroupDetail:
        """Group metadata with its participants.

        Args:
            chat_id: Group identifier.
            fetch_names: Resolve participant names through the session
                (chunks of ``group_concurrency``). Otherwise cached names only.
        """
        session = self._session()
        logger.info("[Groups] Fetching group info for %s (fetchNames=%s)", chat_id, fetch_names)
        chat = await self._group(session, chat_id)

        ids = [p.id for p in chat.participants]
        if fetch_names and ids:
            logger.info("[Groups] Fetching names for %d participants", len(ids))
            names = await self._resolver.resolve_many(ids, concurrency=self._settings.group_concurrency)
        else:
            names = self._resolver.lookup_cached(ids, phone_fallback=False)

        participants = []
        for p in chat.participants:
            info = names.get(p.id)
            participants.append(GroupParticipant(
                id=p.id,
                isAdmin=p.is_admin,
                isSuperAdmin=p.is_super_admin,
                name=info.displayName if info else None,
                profilePic=info.avatarUrl if info else None,
            ))

        logger.info("[Groups] Group %s: %d participants", chat.name, len(participants))
        return GroupDetail(
            id=chat.id,
            name=chat.name,
            description=chat.description or None,
            owner=chat.owner or None,
            createdAt=chat.created_at or None,
            participants=participants,
            participantCount=len(participants),
            unreadCount=chat.unread_count,
            isReadOnly=chat.is_read_only,
            isMuted=chat.is_muted,
            muteExpiration=chat.mute_expiration or None,
        )

    async def invite_code(self, chat_id: str) -> InviteCodeResponse:
        session = self._session()
        await self._group(session, chat_id)
        code = await call_upstream(session.get_invite_code(chat_id))
        return InviteCodeResponse(
            code=code or None,
            inviteLink=f"{INVITE_LINK_BASE}{code}" if code else None,
        )

    async def leave(self, chat_id: str) -> None:
        session = self._session()
        chat = await self._group(session, chat_id)
        await call_upstream(session.leave_group(chat_id))
        logger.info("[Groups] Left group: %s", chat.name)

    async def change_participants(
        self,
        chat_id: str,
        action: str,
        participants: Optional[List[str]],
    ) -> Dict[str, Any]:
        """Add, remove, promote or demote participants.

        Args:
            chat_id: Group identifier.
            action: ``add``, ``remove``, ``promote`` or ``demote``.
            participants: Phone numbers or participant ids.

        Returns:
            The session's per-participant result.
        """
        session = self._session()
        if not participants:
            raise InvalidInputError("participants array required")
        operation = {
            "add": session.add_participants,
            "remove": session.remove_participants,
            "promote": session.promote_participants,
            "demote": session.demote_participants,
        }.get(action)
        if operation is None:
            raise InvalidInputError(f"Unknown participant action: {action}")

        chat = await self._group(session, chat_id)
        ids = normalize_participant_ids(participants)
        result = await call_upstream(operation(chat_id, ids))
        logger.info("[Groups] %s participants in %s: %s", action.capitalize(), chat.name, ids)
        return result or {}

    async def set_subject(self, chat_id: str, subject: Optional[str]) -> None:
        session = self._session()
        if not subject:
            raise InvalidInputError("subject required")
        await self._group(session, chat_id)
        await call_upstream(session.set_group_subject(chat_id, subject))
        logger.info("[Groups] Updated group subject: %s", subject)

    async def set_description(self, chat_id: str, description: Optional[str]) -> None:
        session = self._session()
        await self._group(session, chat_id)
        await call_upstream(session.set_group_description(chat_id, description or ""))
        logger.info("[Groups] Updated group description for %s", chat_id)
