"""Pydantic schemas for the connection endpoints."""
from typing import Optional

from pydantic import BaseModel, Field


class StatusResponse(BaseModel):
    connected: bool
    hasQr: bool
    hasPairingCode: bool
    state: str


class QrResponse(BaseModel):
    qr: str


class PairingCodeRequest(BaseModel):
    phoneNumber: Optional[str] = Field(default=None, description="Phone number with country code")


class PairingCodeResponse(BaseModel):
    code: str
