"""Pydantic schemas for contact resolution."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ContactInfo(BaseModel):
    """Best-available identity for a participant.

    Both fields may be ``None``: that is a valid negative result (no public
    name, no photo) and is cached like any other.
    """
    model_config = ConfigDict(frozen=True)

    displayName: Optional[str] = Field(default=None, description="Self-declared or saved name")
    avatarUrl: Optional[str] = Field(default=None, description="Profile picture URL")


class ProfilePicResponse(BaseModel):
    url: Optional[str] = None
