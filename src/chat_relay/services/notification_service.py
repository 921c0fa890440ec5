"""Best-effort notification and activity dispatch for chat events."""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Coroutine

from chat_relay.application.dto.notification import ActivityRecord, NotificationRecord
from chat_relay.application.ports.clock import Clock, SystemClock, isoformat_now
from chat_relay.application.ports.directory import ParticipantDirectory
from chat_relay.application.ports.notifications import NotificationStore
from chat_relay.domain.value_objects.enums import NotificationType
from chat_relay.infrastructure.ws.protocol import (
    ChatMessage,
    Follow,
    NotificationBody,
    NotificationEnvelope,
)

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100

_CATEGORIES: dict[str, str] = {
    NotificationType.MESSAGE.value: "message",
    NotificationType.FOLLOW.value: "social",
}


def _preview(content: str) -> str:
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[: PREVIEW_LENGTH - 3] + "..."


def message_notification(message: ChatMessage, recipient_id: str | None) -> NotificationRecord:
    sender_name = message.sender_name
    return NotificationRecord(
        user_id=recipient_id,
        type=NotificationType.MESSAGE,
        title=f"New message from {sender_name}",
        message=_preview(message.content),
        data={
            "conversationId": message.conversation_id,
            "messageId": message.id,
            "senderId": message.sender_id,
            "senderName": sender_name,
        },
    )


def follow_notification(event: Follow) -> NotificationRecord:
    follower_name = event.follower_name or "Someone"
    return NotificationRecord(
        user_id=event.followed_id,
        type=NotificationType.FOLLOW,
        title="New follower",
        message=f"{follower_name} started following you",
        data={
            "followerId": event.follower_id,
            "followerName": event.follower_name,
            "followedId": event.followed_id,
        },
    )


def message_activity(message: ChatMessage, recipient_count: int) -> ActivityRecord:
    noun = "participant" if recipient_count == 1 else "participants"
    return ActivityRecord(
        user_id=message.sender_id,
        type="message_sent",
        title="Sent a message",
        description=f"Sent a message to {recipient_count} {noun}",
        category="messaging",
        visibility="private",
        data={
            "conversationId": message.conversation_id,
            "messageId": message.id,
            "recipientCount": recipient_count,
        },
    )


class NotificationDispatcher:
    """Looks up recipients and hands notifications to the external store.

    Persistence calls are spawned as tasks: the caller only ever waits for the
    participant lookup, never for the store. Failures are logged and dropped.
    """

    def __init__(
        self,
        directory: ParticipantDirectory,
        store: NotificationStore,
        clock: Clock | None = None,
    ) -> None:
        self._directory = directory
        self._store = store
        self._clock = clock or SystemClock()
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def store(self) -> NotificationStore:
        return self._store

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def notify_new_message(self, message: ChatMessage) -> int:
        """Spawn one notification per other participant and one activity entry.

        Returns the number of recipients. An unreachable directory means no
        notifications at all for this message.
        """
        try:
            participants = await self._directory.active_participant_ids(message.conversation_id)
        except Exception:
            logger.exception(
                "Participant lookup failed for conversation %s, skipping notifications",
                message.conversation_id,
            )
            return 0

        recipients = [p for p in participants if p != message.sender_id]
        for recipient_id in recipients:
            self._spawn(
                self.save_notification(message_notification(message, recipient_id)),
                f"notify-message-{message.id}-{recipient_id}",
            )
        self._spawn(
            self.save_user_activity(message_activity(message, len(recipients))),
            f"activity-message-{message.id}",
        )
        logger.info(
            "Queued %d message notifications for conversation %s",
            len(recipients), message.conversation_id,
        )
        return len(recipients)

    def notify_follow(self, event: Follow) -> NotificationRecord:
        record = follow_notification(event)
        self._spawn(
            self.save_notification(record),
            f"notify-follow-{event.follower_id}-{event.followed_id}",
        )
        return record

    async def save_notification(self, record: NotificationRecord) -> bool:
        try:
            await self._store.save_notification(record)
        except Exception:
            logger.exception("Failed to save %s notification for user %s", record.type, record.user_id)
            return False
        logger.debug("Saved %s notification for user %s", record.type, record.user_id)
        return True

    async def save_user_activity(self, record: ActivityRecord) -> bool:
        try:
            await self._store.save_user_activity(record)
        except Exception:
            logger.exception("Failed to save %s activity for user %s", record.type, record.user_id)
            return False
        return True

    def live_envelope(self, record: NotificationRecord) -> NotificationEnvelope:
        return NotificationEnvelope(
            notification=NotificationBody(
                id=str(uuid.uuid4()),
                user_id=record.user_id,
                type=str(record.type),
                title=record.title,
                message=record.message,
                data=record.data,
                created_at=isoformat_now(self._clock),
                category=_CATEGORIES.get(str(record.type), "general"),
            ),
        )

    async def drain(self, timeout: float | None = None) -> int:
        """Wait for spawned persistence calls to settle.

        Calls still running once ``timeout`` seconds have passed are cancelled.
        Returns how many were cancelled.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while self._pending:
            remaining = None if deadline is None else max(deadline - loop.time(), 0.0)
            _, pending = await asyncio.wait(list(self._pending), timeout=remaining)
            if pending:
                logger.warning(
                    "Cancelling %d notification calls still pending after %.1fs",
                    len(pending), timeout,
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)
                return len(pending)
        return 0

    def _spawn(self, coro: Coroutine[Any, Any, bool], name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
