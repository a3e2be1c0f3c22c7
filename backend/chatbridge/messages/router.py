"""Message page, send and search endpoints.

This module provides:
    - GET /api/chats/{chat_id}/messages: Cursor-paginated message page
    - POST /api/chats/{chat_id}/messages: Send a text message
    - GET /api/messages/search: Search messages
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from chatbridge.chats.service import ChatService
from chatbridge.deps import get_chat_service, get_message_pager
from chatbridge.identifiers import normalize_chat_id

from .pagination import MessagePager
from .schemas import MessagePage, SearchResponse, SendMessageRequest, SendMessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["messages"])


@router.get("/chats/{chat_id}/messages", response_model=MessagePage)
async def get_messages(
    chat_id: str,
    limit: Optional[int] = Query(default=None, ge=0, description="0 selects the default"),
    before: Optional[int] = Query(default=None, ge=0, description="Exclusive upper-bound timestamp (seconds); 0 means latest"),
    sync: bool = Query(default=False),
    timeout: Optional[int] = Query(default=None, ge=1, description="Milliseconds"),
    fetchNames: bool = Query(default=True),
    pager: MessagePager = Depends(get_message_pager),
) -> MessagePage:
    """One page of messages, oldest first.

    Pass the previous page's ``oldestTimestamp`` as ``before`` to page back.
    ``sync=1`` triggers a history sync even on the first page;
    ``fetchNames=0`` serves sender names from cache only (for polling).
    """
    chat_id = normalize_chat_id(chat_id)
    logger.info(
        "[Messages] Fetching messages for %s (limit=%s, before=%s, sync=%s, fetchNames=%s)",
        chat_id, limit, before or "latest", sync, fetchNames,
    )
    return await pager.fetch_page(
        chat_id,
        limit=limit,
        before=before,
        sync=sync,
        resolve_names=fetchNames,
        timeout=timeout / 1000 if timeout else None,
    )


@router.post("/chats/{chat_id}/messages", response_model=SendMessageResponse)
async def send_message(
    chat_id: str,
    body: SendMessageRequest,
    service: ChatService = Depends(get_chat_service),
) -> SendMessageResponse:
    message = await service.send_text(normalize_chat_id(chat_id), body.msg, body.quotedMessageId)
    return SendMessageResponse(id=message.id)


@router.get("/messages/search", response_model=SearchResponse)
async def search_messages(
    query: Optional[str] = Query(default=None),
    chatId: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1),
    service: ChatService = Depends(get_chat_service),
) -> SearchResponse:
    """Search message bodies across all chats or within ``chatId``."""
    return await service.search(
        query,
        chat_id=normalize_chat_id(chatId) if chatId else None,
        limit=limit,
    )
