"""Chat-level pass-through operations.

Thin wrappers over the session for listing chats, sending text and media,
marking chats read, downloading media and searching. Each call requires a
ready session and maps session failures onto the bridge error taxonomy.
"""
import base64
import binascii
import logging
import mimetypes
import posixpath
import re
from typing import List, Optional
from urllib.parse import urlparse

import httpx

from chatbridge.config import ChatListSettings, MediaSettings, SearchSettings
from chatbridge.connection.state import SessionStateStore
from chatbridge.errors import InvalidInputError, NotFoundError, NotReadyError, UpstreamFailureError
from chatbridge.messages.schemas import SearchResponse, SearchResult
from chatbridge.session import MediaPayload, MessagingSession, SessionMessage
from chatbridge.upstream import call_upstream

from .schemas import ChatSummary, LastMessagePreview, MediaResponse

logger = logging.getLogger(__name__)

CHAT_TYPES = ("all", "group", "direct")
PREVIEW_LENGTH = 50

_DATA_URL_PREFIX = re.compile(r"^data:[^;]+;base64,")


def strip_data_url(data: str) -> str:
    """Drop a leading ``data:<mime>;base64,`` prefix if present."""
    return _DATA_URL_PREFIX.sub("", data, count=1)


class ChatService:
    """Chat operations backed by the owned session.

    Args:
        store: Connection state (readiness and the session handle).
        chat_settings: Chat list limits and timeout.
        search_settings: Search limits.
        media_settings: Media download scan depth and URL fetch timeout.
        http_transport: Optional httpx transport for media-url fetches.
    """

    def __init__(
        self,
        store: SessionStateStore,
        chat_settings: Optional[ChatListSettings] = None,
        search_settings: Optional[SearchSettings] = None,
        media_settings: Optional[MediaSettings] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._store = store
        self._chats = chat_settings or ChatListSettings()
        self._search = search_settings or SearchSettings()
        self._media = media_settings or MediaSettings()
        self._http_transport = http_transport

    def _session(self) -> MessagingSession:
        session = self._store.session
        if session is None or not self._store.is_ready:
            raise NotReadyError()
        return session

    # ------------------------------------------------------------------
    # Chat list
    # ------------------------------------------------------------------

    async def list_chats(
        self,
        limit: Optional[int] = None,
        chat_type: str = "all",
        timeout_ms: Optional[int] = None,
    ) -> List[ChatSummary]:
        """Chats ordered by most recent activity.

        Args:
            limit: Maximum rows (default 50, capped at 200).
            chat_type: ``all``, ``group`` or ``direct``.
            timeout_ms: Deadline for the session call, in milliseconds.
        """
        session = self._session()
        if chat_type not in CHAT_TYPES:
            raise InvalidInputError(f"type must be one of {', '.join(CHAT_TYPES)}")
        limit = min(limit or self._chats.default_limit, self._chats.max_limit)
        timeout_ms = timeout_ms or self._chats.default_timeout_ms

        logger.info("[Chats] Fetching chats (limit=%d, type=%s, timeout=%dms)", limit, chat_type, timeout_ms)
        chats = await call_upstream(
            session.get_chats(),
            seconds=timeout_ms / 1000,
            timeout_message="Timeout fetching chats",
        )

        if chat_type == "group":
            filtered = [c for c in chats if c.is_group]
        elif chat_type == "direct":
            filtered = [c for c in chats if not c.is_group]
        else:
            filtered = list(chats)

        filtered.sort(key=lambda c: c.timestamp or 0, reverse=True)
        rows = [
            ChatSummary(
                id=c.id,
                name=c.name,
                isGroup=c.is_group,
                unreadCount=c.unread_count,
                timestamp=c.timestamp or 0,
                lastMessage=(
                    LastMessagePreview(body=(c.last_message.body or "")[:PREVIEW_LENGTH])
                    if c.last_message is not None else None
                ),
                participantCount=len(c.participants) if c.is_group else None,
            )
            for c in filtered[:limit]
        ]
        logger.info("[Chats] Returning %d chats (of %d filtered, %d total)", len(rows), len(filtered), len(chats))
        return rows

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_text(
        self,
        chat_id: str,
        text: Optional[str],
        quoted_message_id: Optional[str] = None,
    ) -> SessionMessage:
        session = self._session()
        if not text:
            raise InvalidInputError("Message required")
        message = await call_upstream(session.send_message(chat_id, text, quoted_message_id=quoted_message_id))
        logger.info("[Chats] Sent message %s to %s", message.id, chat_id)
        return message

    async def mark_read(self, chat_id: str) -> None:
        session = self._session()
        logger.info("[Chats] Marking chat as read: %s", chat_id)
        await call_upstream(session.send_seen(chat_id))

    async def send_media(
        self,
        chat_id: str,
        data: Optional[str],
        mimetype: Optional[str],
        filename: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> SessionMessage:
        """Send base64 media. ``data`` may be a full data URL."""
        session = self._session()
        if not data or not mimetype:
            raise InvalidInputError("data and mimetype required")

        payload = strip_data_url(data)
        try:
            base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidInputError("data must be valid base64") from exc

        logger.info("[Chats] Sending media to %s: %s, %s", chat_id, mimetype, filename or "unnamed")
        media = MediaPayload(mimetype=mimetype, data=payload, filename=filename or None)
        return await call_upstream(session.send_message(chat_id, media, caption=caption or None))

    async def send_media_url(self, chat_id: str, url: Optional[str], caption: Optional[str] = None) -> SessionMessage:
        """Download media over HTTP and send it to a chat."""
        session = self._session()
        if not url:
            raise InvalidInputError("url required")
        if urlparse(url).scheme not in ("http", "https"):
            raise InvalidInputError("url must be http or https")

        logger.info("[Chats] Sending media from URL to %s: %s", chat_id, url)
        media = await self._fetch_media(url)
        return await call_upstream(session.send_message(chat_id, media, caption=caption or None))

    async def _fetch_media(self, url: str) -> MediaPayload:
        try:
            async with httpx.AsyncClient(
                transport=self._http_transport,
                follow_redirects=True,
                timeout=self._media.url_fetch_timeout_seconds,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("[Chats] Media download failed for %s: %s", url, exc)
            raise UpstreamFailureError(f"Failed to fetch media: {exc}") from exc

        path = urlparse(url).path
        filename = posixpath.basename(path) or None
        mimetype = response.headers.get("content-type", "").split(";")[0].strip()
        if not mimetype:
            mimetype = mimetypes.guess_type(path)[0] or "application/octet-stream"

        logger.debug("[Chats] Media fetched: %s, %dKB", mimetype, len(response.content) // 1024)
        return MediaPayload(
            mimetype=mimetype,
            data=base64.b64encode(response.content).decode("ascii"),
            filename=filename,
        )

    # ------------------------------------------------------------------
    # Media download and search
    # ------------------------------------------------------------------

    async def download_media(self, chat_id: str, message_id: str) -> MediaResponse:
        """Media of a recent message, as a data URL.

        Only the last ``download_scan_limit`` messages of the chat are
        searched.
        """
        session = self._session()
        logger.info("[Chats] Fetching media for message %s", message_id)

        chat = await call_upstream(session.get_chat_by_id(chat_id))
        if chat is None:
            raise NotFoundError("Chat not found")
        recent = await call_upstream(session.fetch_messages(chat_id, self._media.download_scan_limit))

        message = next(
            (m for m in recent or [] if m.id == message_id or message_id in m.id),
            None,
        )
        if message is None:
            raise NotFoundError("Message not found")
        if not message.has_media:
            raise InvalidInputError("Message has no media")

        media = await call_upstream(session.download_media(message))
        if media is None:
            raise NotFoundError("Media not available")

        logger.info("[Chats] Media fetched: %s, %dKB", media.mimetype, len(media.data) // 1024)
        return MediaResponse(
            mimetype=media.mimetype,
            data=f"data:{media.mimetype};base64,{media.data}",
            filename=media.filename or None,
        )

    async def search(
        self,
        query: Optional[str],
        chat_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> SearchResponse:
        session = self._session()
        if not query:
            raise InvalidInputError("query parameter required")
        limit = min(limit or self._search.default_limit, self._search.max_limit)

        logger.info("[Search] Searching messages: %r (chatId=%s, limit=%d)", query, chat_id or "all", limit)
        found = await call_upstream(session.search_messages(query, chat_id=chat_id, limit=limit))
        results = [
            SearchResult(
                id=m.id,
                msgId=m.id,
                body=m.body or "",
                from_=m.sender,
                fromMe=m.from_me,
                timestamp=m.timestamp or 0,
                type=m.type or "chat",
                hasMedia=m.has_media,
                chatId=m.chat_id,
            )
            for m in found
        ]
        logger.info("[Search] Returned %d messages", len(results))
        return SearchResponse(query=query, results=results, count=len(results))
