"""WebSocket endpoint for live session events.

Protocol:
    1. Client connects to ``/`` (or ``/ws``).
       → Server sends: {type: "status", data: {connected, hasQr, hasPairingCode, state}}
    2. Server pushes {type, data} frames for every forwarded session event:
       status, message, message_sent, message_ack, message_deleted, typing,
       chat_update.
    3. Frames sent by the client are read and ignored.
"""
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from chatbridge.deps import get_broadcast_hub

from .hub import BroadcastHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.websocket("/")
@router.websocket("/ws")
async def events_endpoint(websocket: WebSocket, hub: BroadcastHub = Depends(get_broadcast_hub)) -> None:
    await websocket.accept()
    logger.info("[WS] Client connected")
    await hub.attach(websocket)
    try:
        while True:
            # receive-only protocol; reading keeps disconnects visible
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("[WS] Client disconnected")
    except Exception as e:
        logger.warning(f"[WS] Connection error: {e}")
    finally:
        hub.detach(websocket)
