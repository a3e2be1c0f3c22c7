"""Cursor-paginated message retrieval with optional history backfill.

``MessagePager.fetch_page`` turns one slow, partially reliable session into
a page of enriched ``MessageRecord`` objects:

1. Resolve the chat (bounded by ``chat_lookup_timeout_seconds``).
2. When paginating backwards or asked to, run a best-effort history sync.
3. Fetch raw messages, twice the page size when a cursor is given so the
   cursor filter still leaves a full page.
4. Keep messages strictly older than the cursor, then the newest ``limit``.
5. Resolve names for mentions and group senders (batched, or cache only).
6. Enrich each message: mention text, group sender, quoted reply.

Only steps 1 and 3 can fail the request. Everything else degrades: a failed
sync is ignored, a failed name lookup falls back to phone numbers, and a
message whose enrichment fails is returned without it.

``hasMore`` is a heuristic (``len(page) == limit``). When the session does
not hold enough history even after a sync, deep pages may come back empty.
"""
import logging
import re
from typing import Dict, Iterable, List, Optional

from chatbridge.config import MessageSettings
from chatbridge.connection.state import SessionStateStore
from chatbridge.contacts import ContactInfo, ContactResolver
from chatbridge.errors import ChatUnavailableError, NotReadyError
from chatbridge.identifiers import phone_of
from chatbridge.session import Chat, MessagingSession, SessionMessage
from chatbridge.upstream import call_upstream, with_timeout

from .schemas import MessagePage, MessageRecord, QuotedSummary

logger = logging.getLogger(__name__)


def substitute_mentions(body: str, mentioned_ids: Iterable[str], names: Dict[str, ContactInfo]) -> str:
    """Replace ``@<digits>`` tokens with ``@<display name>`` where known.

    Example:
        >>> substitute_mentions("hello @5491112345678", ["5491112345678@c.us"],
        ...                     {"5491112345678@c.us": ContactInfo(displayName="Ana")})
        'hello @Ana'
    """
    for mention_id in mentioned_ids:
        info = names.get(mention_id)
        if info is None or not info.displayName:
            continue
        phone = phone_of(mention_id)
        if not phone:
            continue
        replacement = f"@{info.displayName}"
        body = re.sub(rf"@{re.escape(phone)}\b", lambda _m: replacement, body)
    return body


def select_page(messages: List[SessionMessage], limit: int, before: Optional[int]) -> List[SessionMessage]:
    """Apply the cursor filter and keep the newest *limit* messages."""
    if before is not None:
        messages = [m for m in messages if m is not None and m.timestamp and m.timestamp < before]
    else:
        messages = [m for m in messages if m is not None]
    return messages[-limit:] if limit > 0 else []


class MessagePager:
    """Builds message pages for ``GET /api/chats/{id}/messages``.

    Args:
        store: Connection state (readiness and the session handle).
        resolver: Contact resolver for mentions and group senders.
        settings: Page sizes and upstream timeouts.
        contact_concurrency: Chunk size for name resolution.
    """

    def __init__(
        self,
        store: SessionStateStore,
        resolver: ContactResolver,
        settings: Optional[MessageSettings] = None,
        contact_concurrency: int = 5,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._settings = settings or MessageSettings()
        self._contact_concurrency = contact_concurrency

    def clamp_limit(self, limit: Optional[int]) -> int:
        if not limit:
            limit = self._settings.default_page_size
        return max(1, min(int(limit), self._settings.max_page_size))

    async def fetch_page(
        self,
        chat_id: str,
        limit: Optional[int] = None,
        before: Optional[int] = None,
        sync: bool = False,
        resolve_names: bool = True,
        timeout: Optional[float] = None,
    ) -> MessagePage:
        """Fetch one page of messages older than *before*.

        Args:
            chat_id: Normalized chat identifier.
            limit: Page size, clamped to ``[1, max_page_size]``. ``None`` or 0
                selects the default.
            before: Exclusive upper-bound timestamp (seconds). ``None`` or 0
                for the most recent page.
            sync: Force a history sync even without a cursor.
            resolve_names: Resolve unknown names through the session. When
                False only cached names are used.
            timeout: Deadline in seconds for the message fetch.

        Returns:
            The page, with ``hasMore`` and ``oldestTimestamp`` for the next
            request.

        Raises:
            NotReadyError: The session is not ready.
            ChatUnavailableError: The chat lookup failed, timed out or
                returned nothing.
            UpstreamTimeoutError, UpstreamFailureError: The fetch failed.
        """
        session = self._store.session
        if session is None or not self._store.is_ready:
            raise NotReadyError()

        limit = self.clamp_limit(limit)
        before = before or None
        if timeout is None:
            timeout = self._settings.default_timeout_ms / 1000

        chat = await self._get_chat(session, chat_id)
        is_group = chat.is_group
        logger.info("[Messages] Chat found: %s, isGroup=%s", chat.name, is_group)

        participants = {p.id: p for p in chat.participants} if is_group else {}

        if before is not None or sync:
            await self._sync_history(session, chat_id)

        fetch_limit = limit * 2 if before is not None else limit
        raw = await call_upstream(
            session.fetch_messages(chat_id, fetch_limit),
            seconds=timeout,
            timeout_message="Timeout fetching messages",
            error_prefix="Failed to fetch messages: ",
        )
        if not isinstance(raw, list):
            logger.info("[Messages] No message list returned for %s", chat_id)
            return MessagePage(isGroup=is_group)
        logger.debug("[Messages] Fetched %d raw messages (limit=%d)", len(raw), fetch_limit)

        page = select_page(raw, limit, before)
        has_more = len(page) == limit
        oldest = page[0].timestamp if page else None

        names = await self._resolve_names(page, is_group, resolve_names)

        records = []
        for message in page:
            records.append(await self._build_record(session, message, is_group, participants, names))

        logger.info("[Messages] Returning %d messages (hasMore=%s)", len(records), has_more)
        return MessagePage(
            messages=records,
            hasMore=has_more,
            oldestTimestamp=oldest,
            isGroup=is_group,
            participantCount=len(participants) if is_group else None,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _get_chat(self, session: MessagingSession, chat_id: str) -> Chat:
        try:
            chat = await with_timeout(
                session.get_chat_by_id(chat_id),
                self._settings.chat_lookup_timeout_seconds,
                "Timeout getting chat",
            )
        except Exception as exc:
            detail = getattr(exc, "message", None) or str(exc) or "Unknown error"
            logger.warning("[Messages] Error getting chat %s: %s", chat_id, detail)
            raise ChatUnavailableError(f"Failed to get chat: {detail}") from exc
        if chat is None:
            raise ChatUnavailableError("Failed to get chat: Chat not found")
        return chat

    async def _sync_history(self, session: MessagingSession, chat_id: str) -> None:
        try:
            await with_timeout(
                session.sync_history(chat_id),
                self._settings.history_sync_timeout_seconds,
                "Timeout syncing history",
            )
            logger.debug("[Messages] History sync completed for %s", chat_id)
        except Exception as exc:
            logger.info("[Messages] History sync failed (non-fatal): %s", exc)

    async def _resolve_names(
        self, page: List[SessionMessage], is_group: bool, resolve_names: bool
    ) -> Dict[str, ContactInfo]:
        wanted: List[str] = []
        for message in page:
            wanted.extend(message.mentioned_ids)
            if is_group and not message.from_me and message.author:
                wanted.append(message.author)
        if not wanted:
            return {}

        if not resolve_names:
            return self._resolver.lookup_cached(wanted)
        try:
            return await self._resolver.resolve_many(wanted, concurrency=self._contact_concurrency)
        except Exception as exc:
            logger.warning("[Messages] Batch contact fetch failed: %s", exc)
            return self._resolver.lookup_cached(wanted)

    async def _build_record(
        self,
        session: MessagingSession,
        message: SessionMessage,
        is_group: bool,
        participants: dict,
        names: Dict[str, ContactInfo],
    ) -> MessageRecord:
        record = MessageRecord(
            id=message.id,
            msgId=message.id,
            chatId=message.chat_id,
            from_=message.sender,
            body=message.body or "",
            fromMe=message.from_me,
            timestamp=message.timestamp or 0,
            type=message.type or "chat",
            hasMedia=message.has_media,
            mentionedIds=list(message.mentioned_ids),
        )
        try:
            if message.mentioned_ids and record.body:
                record.body = substitute_mentions(record.body, message.mentioned_ids, names)

            if is_group and not message.from_me and message.author:
                resolved = names.get(message.author)
                record.senderId = message.author
                record.senderName = (
                    message.notify_name
                    or (resolved.displayName if resolved else None)
                    or phone_of(message.author)
                    or None
                )
                record.senderPic = resolved.avatarUrl if resolved else None
                participant = participants.get(message.author)
                if participant is not None:
                    record.isAdmin = participant.is_admin
                    record.isSuperAdmin = participant.is_super_admin

            if message.has_quoted_msg:
                record.quotedMsg = await self._quoted_summary(session, message, names)
        except Exception as exc:
            logger.warning("[Messages] Error enriching message %s: %s", message.id, exc)
        return record

    async def _quoted_summary(
        self,
        session: MessagingSession,
        message: SessionMessage,
        names: Dict[str, ContactInfo],
    ) -> Optional[QuotedSummary]:
        try:
            quoted = await session.get_quoted_message(message)
        except Exception as exc:
            logger.info("[Messages] Error fetching quoted message: %s", exc)
            return None
        if quoted is None:
            return None

        if quoted.from_me:
            sender_name = "You"
        else:
            author = quoted.author or quoted.sender
            resolved = names.get(author)
            sender_name = (
                quoted.notify_name
                or (resolved.displayName if resolved else None)
                or phone_of(author)
                or None
            )
        return QuotedSummary(
            body=quoted.body or "",
            type=quoted.type or "chat",
            hasMedia=quoted.has_media,
            fromMe=quoted.from_me,
            senderName=sender_name,
        )
