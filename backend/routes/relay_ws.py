from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from app.context import RelayContext
from app.models import Envelope, ServerEvent
from services.relay import INTERNAL_FAILURE, RelayHandler

router = APIRouter(tags=["relay"])
logger = logging.getLogger(__name__)


async def _drain_outbox(websocket: WebSocket, connection_id: str, outbox: asyncio.Queue[dict[str, Any]]) -> None:
    try:
        while True:
            message = await outbox.get()
            await websocket.send_json(message)
    except (WebSocketDisconnect, RuntimeError) as e:
        # Socket closed under us; the read loop sees the disconnect and cleans up.
        logger.debug("[relay_ws] Writer for %s stopped: %r", connection_id, e)


def _ack(ack_id: int | str | None, body: dict[str, Any]) -> dict[str, Any]:
    return {"event": ServerEvent.ACK, "ack": ack_id, "data": body}


@router.websocket("/ws")
async def ws_relay(websocket: WebSocket) -> None:
    """
    One duplex channel per client.

    Inbound frames:  {"event": str, "data": any, "ack": id?}
    Acks:            {"event": "ack", "ack": id, "data": {...}}
    Relayed events:  {"event": str, "data": any}
    """
    relay: RelayContext = websocket.app.state.relay
    connection_id = uuid.uuid4().hex
    await websocket.accept()
    logger.info("[relay_ws] Client connected: %s", connection_id)

    outbox = await relay.hub.register(connection_id)
    handler = RelayHandler(connection_id, relay.registry, relay.hub)
    writer = asyncio.create_task(_drain_outbox(websocket, connection_id, outbox))
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                logger.warning("[relay_ws] Ignoring non-text frame from %s", connection_id)
                continue
            try:
                envelope = Envelope.model_validate_json(raw)
            except ValidationError:
                logger.warning("[relay_ws] Malformed frame from %s: %.80s", connection_id, raw)
                continue
            try:
                reply = await handler.dispatch(envelope)
            except Exception:
                logger.exception("[relay_ws] %s handling failed for %s", envelope.event, connection_id)
                reply = INTERNAL_FAILURE if envelope.ack is not None else None
            if reply is not None:
                await websocket.send_json(_ack(envelope.ack, reply))
    except WebSocketDisconnect:
        pass
    finally:
        logger.info("[relay_ws] Client disconnected: %s", connection_id)
        await handler.connection_lost()
        await relay.hub.unregister(connection_id)
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("[relay_ws] Writer for %s failed", connection_id)
