"""In-process registry of live connections and their sessions."""
from __future__ import annotations

import logging
from typing import Callable

from chat_relay.application.exceptions import DuplicateConnectionError
from chat_relay.application.ports.clock import Clock, SystemClock
from chat_relay.application.ports.connection import Connection
from chat_relay.domain.entities.session import ClientSession

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Single source of truth for who is connected as whom, viewing what.

    Only touched from the event loop, so no locking. Iteration always goes
    through a snapshot because handlers may register or remove connections
    while a fan-out is suspended on a send.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._sessions: dict[Connection, ClientSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, connection: object) -> bool:
        return connection in self._sessions

    def register(
        self,
        connection: Connection,
        user_id: str | None = None,
        conversation_id: str | None = None,
    ) -> ClientSession:
        if connection in self._sessions:
            raise DuplicateConnectionError("connection is already registered")
        session = ClientSession(
            user_id=user_id or None,
            conversation_id=conversation_id or None,
            connected_at=self._clock.now(),
        )
        self._sessions[connection] = session
        logger.debug("Registered connection (total=%d)", len(self._sessions))
        return session

    def remove(self, connection: Connection) -> ClientSession | None:
        session = self._sessions.pop(connection, None)
        if session is not None:
            logger.debug("Removed connection (total=%d)", len(self._sessions))
        return session

    def session_of(self, connection: Connection) -> ClientSession | None:
        return self._sessions.get(connection)

    def find_by_user_id(self, user_id: str) -> Connection | None:
        """First open connection for the user, in registration order."""
        for connection, session in self.items():
            if session.user_id == user_id and connection.is_open:
                return connection
        return None

    def items(self) -> list[tuple[Connection, ClientSession]]:
        return list(self._sessions.items())

    def for_each(self, fn: Callable[[Connection, ClientSession], None]) -> None:
        for connection, session in self.items():
            fn(connection, session)
