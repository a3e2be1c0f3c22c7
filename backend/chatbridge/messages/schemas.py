"""Pydantic schemas for message pages."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QuotedSummary(BaseModel):
    """Short description of the message a reply points to."""
    body: str = ""
    type: str = "chat"
    hasMedia: bool = False
    fromMe: bool = False
    senderName: Optional[str] = None


class MessageRecord(BaseModel):
    """A message as served to API consumers.

    ``from`` is a Python keyword, so the field is ``from_`` with an alias;
    responses are serialized by alias.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    msgId: str
    chatId: str
    from_: str = Field(default="", alias="from")
    body: str = ""
    fromMe: bool = False
    timestamp: int = 0
    type: str = "chat"
    hasMedia: bool = False
    mentionedIds: List[str] = Field(default_factory=list)

    # Group messages from other members only
    senderId: Optional[str] = None
    senderName: Optional[str] = None
    senderPic: Optional[str] = None
    isAdmin: Optional[bool] = None
    isSuperAdmin: Optional[bool] = None

    quotedMsg: Optional[QuotedSummary] = None


class MessagePage(BaseModel):
    messages: List[MessageRecord] = Field(default_factory=list)
    hasMore: bool = False
    oldestTimestamp: Optional[int] = None
    isGroup: bool = False
    participantCount: Optional[int] = None


class SendMessageRequest(BaseModel):
    msg: Optional[str] = None
    quotedMessageId: Optional[str] = None


class SendMessageResponse(BaseModel):
    success: bool = True
    id: str


class SearchResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    msgId: str
    body: str = ""
    from_: str = Field(default="", alias="from")
    fromMe: bool = False
    timestamp: int = 0
    type: str = "chat"
    hasMedia: bool = False
    chatId: str


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResult] = Field(default_factory=list)
    count: int = 0
