"""Shared test fixtures."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import pytest

from chat_relay.application.dto.notification import ActivityRecord, NotificationRecord
from chat_relay.application.exceptions import ParticipantLookupError
from chat_relay.infrastructure.ws.broadcaster import Broadcaster
from chat_relay.infrastructure.ws.presence import PresenceTracker
from chat_relay.infrastructure.ws.registry import ConnectionRegistry
from chat_relay.services.notification_service import NotificationDispatcher
from chat_relay.services.routing_service import MessageRouter

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def now(self) -> datetime:
        return FIXED_NOW


class FakeConnection:
    """In-memory connection; ``fail`` makes every send raise."""

    def __init__(self, name: str = "conn", *, fail: bool = False) -> None:
        self.name = name
        self.open = True
        self.fail = fail
        self.sent: list[str] = []

    @property
    def is_open(self) -> bool:
        return self.open

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError(f"{self.name} is broken")
        self.sent.append(data)

    @property
    def received(self) -> list[dict[str, Any]]:
        return [json.loads(s) for s in self.sent]

    def types(self) -> list[str]:
        return [m["type"] for m in self.received]

    def __repr__(self) -> str:
        return f"FakeConnection({self.name})"


@dataclass
class FakeParticipantDirectory:
    _participants: dict[str, list[str]] = field(default_factory=dict)
    fail: bool = False
    lookups: list[str] = field(default_factory=list)

    async def active_participant_ids(self, conversation_id: str) -> list[str]:
        self.lookups.append(conversation_id)
        if self.fail:
            raise ParticipantLookupError("directory unavailable")
        return list(self._participants.get(conversation_id, []))


@dataclass
class FakeNotificationStore:
    notifications: list[NotificationRecord] = field(default_factory=list)
    activities: list[ActivityRecord] = field(default_factory=list)
    fail_for: set[str] = field(default_factory=set)
    fail_activity: bool = False

    async def save_notification(self, record: NotificationRecord) -> None:
        if record.user_id in self.fail_for:
            raise RuntimeError(f"cannot persist notification for {record.user_id}")
        self.notifications.append(record)

    async def save_user_activity(self, record: ActivityRecord) -> None:
        if self.fail_activity:
            raise RuntimeError("activity endpoint down")
        self.activities.append(record)

    def recipients(self) -> list[str | None]:
        return [n.user_id for n in self.notifications]


@dataclass
class RelayHarness:
    registry: ConnectionRegistry
    presence: PresenceTracker
    broadcaster: Broadcaster
    dispatcher: NotificationDispatcher
    router: MessageRouter
    directory: FakeParticipantDirectory
    store: FakeNotificationStore

    async def open(
        self,
        name: str,
        user_id: str | None = None,
        conversation_id: str | None = None,
    ) -> FakeConnection:
        conn = FakeConnection(name)
        await self.router.connect(conn, user_id=user_id, conversation_id=conversation_id)
        return conn

    async def send(self, conn: FakeConnection, payload: dict[str, Any]) -> None:
        await self.router.handle(conn, json.dumps(payload))
        await self.dispatcher.drain()


def make_harness(
    participants: dict[str, list[str]] | None = None,
) -> RelayHarness:
    clock = FixedClock()
    registry = ConnectionRegistry(clock)
    presence = PresenceTracker()
    broadcaster = Broadcaster(registry)
    directory = FakeParticipantDirectory(participants or {})
    store = FakeNotificationStore()
    dispatcher = NotificationDispatcher(directory, store, clock)
    router = MessageRouter(registry, presence, broadcaster, dispatcher, clock)
    return RelayHarness(registry, presence, broadcaster, dispatcher, router, directory, store)


@pytest.fixture
def harness() -> RelayHarness:
    return make_harness({"c1": ["u1", "u2"]})


def new_message_payload(
    *,
    conversation_id: str = "c1",
    sender_id: str = "u1",
    content: str = "hi",
    message_id: str = "m1",
    sender: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "type": "new_message",
        "message": {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "content": content,
            "sender": sender if sender is not None else {"username": "alice"},
            "id": message_id,
        },
    }
