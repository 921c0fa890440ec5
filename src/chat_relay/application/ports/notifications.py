from __future__ import annotations

from typing import Protocol

from chat_relay.application.dto.notification import ActivityRecord, NotificationRecord


class NotificationStore(Protocol):
    async def save_notification(self, record: NotificationRecord) -> None: ...

    async def save_user_activity(self, record: ActivityRecord) -> None: ...
