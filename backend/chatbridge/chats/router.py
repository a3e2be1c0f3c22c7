"""Chat list, send, read and media endpoints.

This module provides:
    - GET /api/chats: Chats by recency, filterable by type
    - POST /api/chats/{chat_id}/read: Mark a chat as read
    - POST /api/chats/{chat_id}/media: Send base64 media
    - POST /api/chats/{chat_id}/media-url: Send media fetched from a URL
    - GET /api/media/{chat_id}/{msg_id}: Download a message's media
"""
import logging
from typing import List, Optional
from urllib.parse import unquote

from fastapi import APIRouter, Depends, Query

from chatbridge.deps import get_chat_service
from chatbridge.identifiers import normalize_chat_id

from .schemas import ChatSummary, MediaResponse, MediaSendRequest, MediaUrlRequest, SuccessResponse
from .service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chats"])


@router.get("/chats", response_model=List[ChatSummary])
async def list_chats(
    limit: Optional[int] = Query(default=None, ge=1),
    type: str = Query(default="all", pattern="^(all|group|direct)$"),
    timeout: Optional[int] = Query(default=None, ge=1, description="Milliseconds"),
    service: ChatService = Depends(get_chat_service),
) -> List[ChatSummary]:
    """List chats, most recent first.

    Args:
        limit: Maximum chats (default 50, max 200).
        type: ``all``, ``group`` or ``direct``.
        timeout: Session deadline in milliseconds (default 30000).
    """
    return await service.list_chats(limit=limit, chat_type=type, timeout_ms=timeout)


@router.post("/chats/{chat_id}/read", response_model=SuccessResponse)
async def mark_read(chat_id: str, service: ChatService = Depends(get_chat_service)) -> SuccessResponse:
    await service.mark_read(normalize_chat_id(chat_id))
    return SuccessResponse()


@router.post("/chats/{chat_id}/media", response_model=SuccessResponse)
async def send_media(
    chat_id: str,
    body: MediaSendRequest,
    service: ChatService = Depends(get_chat_service),
) -> SuccessResponse:
    await service.send_media(
        normalize_chat_id(chat_id),
        data=body.data,
        mimetype=body.mimetype,
        filename=body.filename,
        caption=body.caption,
    )
    logger.info("[Chats] Media sent successfully")
    return SuccessResponse()


@router.post("/chats/{chat_id}/media-url", response_model=SuccessResponse)
async def send_media_url(
    chat_id: str,
    body: MediaUrlRequest,
    service: ChatService = Depends(get_chat_service),
) -> SuccessResponse:
    await service.send_media_url(normalize_chat_id(chat_id), url=body.url, caption=body.caption)
    logger.info("[Chats] Media from URL sent successfully")
    return SuccessResponse()


@router.get("/media/{chat_id}/{msg_id}", response_model=MediaResponse)
async def download_media(
    chat_id: str,
    msg_id: str,
    service: ChatService = Depends(get_chat_service),
) -> MediaResponse:
    """Media of a recent message as ``{mimetype, data, filename}``."""
    return await service.download_media(normalize_chat_id(chat_id), unquote(msg_id))
