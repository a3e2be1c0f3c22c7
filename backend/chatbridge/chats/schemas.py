"""Pydantic schemas for chat list, send and media endpoints."""
from typing import Optional

from pydantic import BaseModel, Field


class LastMessagePreview(BaseModel):
    body: str = ""


class ChatSummary(BaseModel):
    """One row of ``GET /api/chats``. Built per request, never cached."""
    id: str
    name: str = ""
    isGroup: bool = False
    unreadCount: int = 0
    timestamp: int = 0
    lastMessage: Optional[LastMessagePreview] = None
    participantCount: Optional[int] = None


class SuccessResponse(BaseModel):
    success: bool = True


class MediaSendRequest(BaseModel):
    data: Optional[str] = Field(default=None, description="Base64 payload, optionally a data URL")
    mimetype: Optional[str] = None
    filename: Optional[str] = None
    caption: Optional[str] = None


class MediaUrlRequest(BaseModel):
    url: Optional[str] = None
    caption: Optional[str] = None


class MediaResponse(BaseModel):
    mimetype: str
    data: str = Field(..., description="data:<mimetype>;base64,<payload>")
    filename: Optional[str] = None
