"""Connection status and pairing endpoints.

This module provides:
    - GET /api/status: Connection snapshot
    - GET /api/qr: Current QR challenge payload
    - POST /api/pairing-code: Request a phone-number pairing code
    - GET /api/pairing-code: Current pairing code
"""
import logging

from fastapi import APIRouter, Depends

from chatbridge.deps import get_session_manager, get_state_store
from chatbridge.errors import InvalidInputError, NotFoundError

from .manager import SessionManager
from .schemas import PairingCodeRequest, PairingCodeResponse, QrResponse, StatusResponse
from .state import SessionStateStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["connection"])


@router.get("/status", response_model=StatusResponse)
async def get_status(store: SessionStateStore = Depends(get_state_store)) -> StatusResponse:
    return StatusResponse(**store.snapshot())


@router.get("/qr", response_model=QrResponse)
async def get_qr(store: SessionStateStore = Depends(get_state_store)) -> QrResponse:
    """Raw QR challenge payload. Rendering is left to the client."""
    if store.qr is None:
        raise NotFoundError("No QR available")
    return QrResponse(qr=store.qr)


@router.post("/pairing-code", response_model=PairingCodeResponse)
async def request_pairing_code(
    body: PairingCodeRequest,
    manager: SessionManager = Depends(get_session_manager),
) -> PairingCodeResponse:
    """Request a pairing code for linking by phone number.

    Args:
        body: ``{"phoneNumber": "..."}``; non-digits are stripped.

    Returns:
        ``{"code": "..."}`` to be typed into the phone.
    """
    if not body.phoneNumber:
        raise InvalidInputError("phoneNumber required")
    code = await manager.request_pairing_code(body.phoneNumber)
    return PairingCodeResponse(code=code)


@router.get("/pairing-code", response_model=PairingCodeResponse)
async def get_pairing_code(store: SessionStateStore = Depends(get_state_store)) -> PairingCodeResponse:
    if store.pairing_code is None:
        raise NotFoundError("No pairing code available")
    return PairingCodeResponse(code=store.pairing_code)
