from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from chat_relay.api.deps import RouterDep
from chat_relay.infrastructure.ws.connection import WebSocketConnection
from chat_relay.services.routing_service import MessageRouter

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/conversations/{conversation_id}")
@router.websocket("/")
async def ws_relay(
    websocket: WebSocket,
    relay: RouterDep,
    conversation_id: str | None = None,
    user_id: str | None = Query(default=None, alias="userId"),
) -> None:
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    await relay.connect(connection, user_id=user_id, conversation_id=conversation_id)

    try:
        await _read_loop(websocket, connection, relay)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for user %s", user_id)
    finally:
        await relay.disconnect(connection)


async def _read_loop(ws: WebSocket, connection: WebSocketConnection, relay: MessageRouter) -> None:
    while True:
        message = await ws.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))

        raw = message.get("text")
        if raw is None:
            raw = message.get("bytes")
        if raw is None:
            continue
        await relay.handle(connection, raw)
