"""Connection lifecycle and inbound message routing."""
from __future__ import annotations

import logging

from chat_relay.application.ports.clock import Clock, SystemClock, isoformat_now
from chat_relay.application.ports.connection import Connection
from chat_relay.domain.entities.session import ClientSession
from chat_relay.domain.value_objects.enums import FollowAction
from chat_relay.infrastructure.ws.broadcaster import Broadcaster
from chat_relay.infrastructure.ws.presence import PresenceTracker
from chat_relay.infrastructure.ws.protocol import (
    Follow,
    FollowNotificationEnvelope,
    InboundMessage,
    MessageRelayEnvelope,
    NewMessage,
    PresenceEnvelope,
    TypingUpdate,
    UserPresence,
    classify,
)
from chat_relay.infrastructure.ws.registry import ConnectionRegistry
from chat_relay.services.notification_service import (
    NotificationDispatcher,
    message_notification,
)

logger = logging.getLogger(__name__)


class MessageRouter:
    """Owns the connect / message / disconnect sequence for every connection."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        presence: PresenceTracker,
        broadcaster: Broadcaster,
        dispatcher: NotificationDispatcher,
        clock: Clock | None = None,
    ) -> None:
        self.registry = registry
        self.presence = presence
        self.broadcaster = broadcaster
        self.dispatcher = dispatcher
        self._clock = clock or SystemClock()

    async def connect(
        self,
        connection: Connection,
        user_id: str | None = None,
        conversation_id: str | None = None,
    ) -> ClientSession:
        session = self.registry.register(connection, user_id, conversation_id)
        self.presence.on_join(session.conversation_id, session.user_id)
        logger.info("User %s joined conversation %s", session.user_id, session.conversation_id)

        if session.user_id:
            await self.broadcaster.to_all(
                PresenceEnvelope(user_id=session.user_id, is_online=True),
                exclude=connection,
            )
        return session

    async def disconnect(self, connection: Connection, *, announce: bool = True) -> None:
        # Removed before announcing so a concurrent reap of the same
        # connection finds nothing and stays silent.
        session = self.registry.remove(connection)
        if session is None:
            return
        self.presence.on_leave(session.conversation_id, session.user_id)
        logger.info(
            "Client disconnected: user %s from conversation %s",
            session.user_id, session.conversation_id,
        )
        if announce and session.user_id:
            await self.broadcaster.to_all(
                PresenceEnvelope(user_id=session.user_id, is_online=False),
                exclude=connection,
            )

    async def handle(self, connection: Connection, raw: str | bytes) -> None:
        session = self.registry.session_of(connection)
        message = classify(raw, user_id=session.user_id if session else None)
        if message is None:
            return
        await self.route(connection, message)

    async def route(self, connection: Connection, message: InboundMessage) -> None:
        if isinstance(message, TypingUpdate):
            await self.broadcaster.to_conversation(
                message.conversation_id, message.raw, exclude=connection,
            )
        elif isinstance(message, NewMessage):
            await self._on_new_message(connection, message)
        elif isinstance(message, UserPresence):
            await self.broadcaster.to_all(message.raw, exclude=connection)
        elif isinstance(message, Follow):
            await self._on_follow(message)
        else:
            await self.broadcaster.to_all(message.raw, exclude=connection)

    async def _on_new_message(self, connection: Connection, event: NewMessage) -> None:
        message = event.message
        await self.dispatcher.notify_new_message(message)

        relay = MessageRelayEnvelope(
            sender_name=message.sender_name,
            content=message.content,
            conversation_id=message.conversation_id,
            message_id=message.id,
        )
        # Everyone online hears about it; members of the conversation also
        # get the in-context relay.
        for other, session in self.registry.items():
            if other is connection or not other.is_open:
                continue
            record = message_notification(message, session.user_id)
            await self.broadcaster.send(other, self.dispatcher.live_envelope(record))
            if session.conversation_id == message.conversation_id:
                await self.broadcaster.send(other, relay)

        await self.broadcaster.to_conversation(
            message.conversation_id, event.raw, exclude=connection,
        )

    async def _on_follow(self, event: Follow) -> None:
        if event.action != FollowAction.FOLLOW:
            logger.debug("Ignoring %s event from %s", event.action, event.follower_id)
            return

        record = self.dispatcher.notify_follow(event)
        target = self.registry.find_by_user_id(event.followed_id)
        if target is None:
            return

        await self.broadcaster.send(target, self.dispatcher.live_envelope(record))
        await self.broadcaster.send(
            target,
            FollowNotificationEnvelope(
                follower_id=event.follower_id,
                followed_id=event.followed_id,
                follower_name=event.follower_name,
                action=event.action,
                timestamp=event.timestamp or isoformat_now(self._clock),
            ),
        )
        logger.info("Delivered follow notification to user %s", event.followed_id)
