"""Signaling websocket endpoint."""
from __future__ import annotations

import asyncio
import json
import logging
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from ..schemas.signaling import parse_message
from ..services.connections import SignalingConnection
from ..services.registry import DuplicateRegistration
from ..services.signaling import SignalingService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_signaling_service(websocket: WebSocket) -> SignalingService:
    return websocket.app.state.signaling


async def receive_text_frame(websocket: WebSocket) -> str | None:
    """Next text frame; ``None`` for a binary frame."""

    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    return message.get("text")


@router.websocket("/signaling")
async def signaling_endpoint(websocket: WebSocket) -> None:
    """Relay SDP and ICE payloads between producers and consumers."""

    service = get_signaling_service(websocket)
    connection_id = uuid4().hex
    await websocket.accept()

    await service.connect(SignalingConnection(connection_id=connection_id, send=websocket.send_json))

    try:
        while True:
            text = await receive_text_frame(websocket)
            if text is None:
                logger.warning("Ignoring binary frame from %s", connection_id)
                continue
            try:
                raw = json.loads(text)
            except ValueError:
                logger.warning("Ignoring non-JSON frame from %s", connection_id)
                continue
            try:
                message = parse_message(raw)
            except ValidationError as exc:
                logger.warning("Ignoring invalid message from %s: %s", connection_id, exc.errors()[:1])
                continue
            try:
                await service.handle(connection_id, message)
            except DuplicateRegistration:
                logger.warning("Ignoring repeated register from %s", connection_id)
    except WebSocketDisconnect:
        pass
    finally:
        # The server cancels the endpoint right after a client close; the
        # unregister and offline broadcast still have to go out.
        await asyncio.shield(service.disconnect(connection_id))
