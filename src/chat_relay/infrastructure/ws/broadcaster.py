"""Fan-out of outbound envelopes to registered connections."""
from __future__ import annotations

import logging
from typing import Callable

from chat_relay.application.ports.connection import Connection
from chat_relay.domain.entities.session import ClientSession
from chat_relay.infrastructure.ws.protocol import Envelope, encode_envelope
from chat_relay.infrastructure.ws.registry import ConnectionRegistry

logger = logging.getLogger(__name__)

SessionFilter = Callable[[ClientSession], bool]


class Broadcaster:
    """Delivers envelopes to a filtered subset of the registry.

    Every send has its own failure boundary. A failed send is logged and
    never removes the connection; that is left to the close and reap paths.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    async def to_conversation(
        self,
        conversation_id: str | None,
        envelope: Envelope,
        exclude: Connection | None = None,
    ) -> int:
        if not conversation_id:
            return 0
        sent = await self._fan_out(
            envelope,
            exclude,
            lambda session: session.conversation_id == conversation_id,
        )
        logger.debug("Broadcasted to %d clients in conversation %s", sent, conversation_id)
        return sent

    async def to_all(self, envelope: Envelope, exclude: Connection | None = None) -> int:
        sent = await self._fan_out(envelope, exclude, None)
        logger.debug("Broadcasted to %d clients", sent)
        return sent

    async def send(self, connection: Connection, envelope: Envelope) -> bool:
        if not connection.is_open:
            return False
        return await self._send_raw(connection, encode_envelope(envelope))

    async def _fan_out(
        self,
        envelope: Envelope,
        exclude: Connection | None,
        matches: SessionFilter | None,
    ) -> int:
        raw = encode_envelope(envelope)
        sent = 0
        for connection, session in self._registry.items():
            if connection is exclude or not connection.is_open:
                continue
            if matches is not None and not matches(session):
                continue
            if await self._send_raw(connection, raw):
                sent += 1
        return sent

    @staticmethod
    async def _send_raw(connection: Connection, raw: str) -> bool:
        try:
            await connection.send_text(raw)
        except Exception:
            logger.exception("Error sending message to client")
            return False
        return True
