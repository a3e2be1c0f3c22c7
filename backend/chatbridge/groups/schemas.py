"""Pydantic schemas for group endpoints."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class GroupParticipant(BaseModel):
    id: str
    isAdmin: bool = False
    isSuperAdmin: bool = False
    name: Optional[str] = None
    profilePic: Optional[str] = None


class GroupDetail(BaseModel):
    id: str
    name: str = ""
    description: Optional[str] = None
    owner: Optional[str] = None
    createdAt: Optional[int] = None
    participants: List[GroupParticipant] = Field(default_factory=list)
    participantCount: int = 0
    unreadCount: int = 0
    isReadOnly: bool = False
    isMuted: bool = False
    muteExpiration: Optional[int] = None


class InviteCodeResponse(BaseModel):
    code: Optional[str] = None
    inviteLink: Optional[str] = None


class ParticipantsRequest(BaseModel):
    participants: Optional[List[str]] = Field(default=None, description="Phone numbers or participant ids")


class ParticipantsResponse(BaseModel):
    success: bool = True
    result: Dict[str, Any] = Field(default_factory=dict)


class SubjectRequest(BaseModel):
    subject: Optional[str] = None


class DescriptionRequest(BaseModel):
    description: Optional[str] = None
