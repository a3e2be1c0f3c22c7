"""Profile picture endpoint."""
import logging

from fastapi import APIRouter, Depends

from chatbridge.deps import get_contact_resolver
from chatbridge.identifiers import normalize_chat_id

from .resolver import ContactResolver
from .schemas import ProfilePicResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["contacts"])


@router.get("/profile-pic/{chat_id}", response_model=ProfilePicResponse)
async def get_profile_pic(
    chat_id: str,
    resolver: ContactResolver = Depends(get_contact_resolver),
) -> ProfilePicResponse:
    """Profile picture URL for a chat or contact.

    Never fails: lookups that error out, or a session that is not ready,
    yield the last known URL or ``null``.
    """
    url = await resolver.avatar_for(normalize_chat_id(chat_id))
    return ProfilePicResponse(url=url)
