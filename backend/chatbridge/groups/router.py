"""Group endpoints.

This module provides:
    - GET /api/groups/{chat_id}: Group detail with participants
    - GET /api/groups/{chat_id}/invite-code: Invite code and link
    - POST /api/groups/{chat_id}/leave: Leave the group
    - POST /api/groups/{chat_id}/participants: Add participants
    - DELETE /api/groups/{chat_id}/participants: Remove participants
    - POST /api/groups/{chat_id}/promote: Promote to admin
    - POST /api/groups/{chat_id}/demote: Demote admins
    - PUT /api/groups/{chat_id}/subject: Rename
    - PUT /api/groups/{chat_id}/description: Change description
"""
import logging

from fastapi import APIRouter, Depends, Query

from chatbridge.chats.schemas import SuccessResponse
from chatbridge.deps import get_group_service
from chatbridge.identifiers import normalize_chat_id

from .schemas import (
    DescriptionRequest,
    GroupDetail,
    InviteCodeResponse,
    ParticipantsRequest,
    ParticipantsResponse,
    SubjectRequest,
)
from .service import GroupService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/groups", tags=["groups"])


@router.get("/{chat_id}", response_model=GroupDetail)
async def get_group(
    chat_id: str,
    fetchNames: bool = Query(default=False),
    service: GroupService = Depends(get_group_service),
) -> GroupDetail:
    """Group detail. ``fetchNames=1`` resolves participant names (slower)."""
    return await service.get_group(normalize_chat_id(chat_id), fetch_names=fetchNames)


@router.get("/{chat_id}/invite-code", response_model=InviteCodeResponse)
async def get_invite_code(chat_id: str, service: GroupService = Depends(get_group_service)) -> InviteCodeResponse:
    return await service.invite_code(normalize_chat_id(chat_id))


@router.post("/{chat_id}/leave", response_model=SuccessResponse)
async def leave_group(chat_id: str, service: GroupService = Depends(get_group_service)) -> SuccessResponse:
    await service.leave(normalize_chat_id(chat_id))
    return SuccessResponse()


@router.post("/{chat_id}/participants", response_model=ParticipantsResponse)
async def add_participants(
    chat_id: str,
    body: ParticipantsRequest,
    service: GroupService = Depends(get_group_service),
) -> ParticipantsResponse:
    result = await service.change_participants(normalize_chat_id(chat_id), "add", body.participants)
    return ParticipantsResponse(result=result)


@router.delete("/{chat_id}/participants", response_model=ParticipantsResponse)
async def remove_participants(
    chat_id: str,
    body: ParticipantsRequest,
    service: GroupService = Depends(get_group_service),
) -> ParticipantsResponse:
    result = await service.change_participants(normalize_chat_id(chat_id), "remove", body.participants)
    return ParticipantsResponse(result=result)


@router.post("/{chat_id}/promote", response_model=ParticipantsResponse)
async def promote_participants(
    chat_id: str,
    body: ParticipantsRequest,
    service: GroupService = Depends(get_group_service),
) -> ParticipantsResponse:
    result = await service.change_participants(normalize_chat_id(chat_id), "promote", body.participants)
    return ParticipantsResponse(result=result)


@router.post("/{chat_id}/demote", response_model=ParticipantsResponse)
async def demote_participants(
    chat_id: str,
    body: ParticipantsRequest,
    service: GroupService = Depends(get_group_service),
) -> ParticipantsResponse:
    result = await service.change_participants(normalize_chat_id(chat_id), "demote", body.participants)
    return ParticipantsResponse(result=result)


@router.put("/{chat_id}/subject", response_model=SuccessResponse)
async def set_subject(
    chat_id: str,
    body: SubjectRequest,
    service: GroupService = Depends(get_group_service),
) -> SuccessResponse:
    await service.set_subject(normalize_chat_id(chat_id), body.subject)
    return SuccessResponse()


@router.put("/{chat_id}/description", response_model=SuccessResponse)
async def set_description(
    chat_id: str,
    body: DescriptionRequest,
    service: GroupService = Depends(get_group_service),
) -> SuccessResponse:
    await service.set_description(normalize_chat_id(chat_id), body.description)
    return SuccessResponse()
