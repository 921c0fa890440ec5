from __future__ import annotations

from starlette.websockets import WebSocket, WebSocketState


class WebSocketConnection:
    """Adapts a Starlette WebSocket to the relay's Connection port."""

    __slots__ = ("_ws",)

    def __init__(self, ws: WebSocket) -> None:
        self._ws = ws

    @property
    def is_open(self) -> bool:
        return (
            self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    async def send_text(self, data: str) -> None:
        await self._ws.send_text(data)

    def __repr__(self) -> str:
        client = self._ws.client
        return f"WebSocketConnection({client.host}:{client.port})" if client else "WebSocketConnection()"
