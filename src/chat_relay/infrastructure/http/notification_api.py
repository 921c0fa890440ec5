"""HTTP client for the external notifications / user-activity API."""
from __future__ import annotations

import dataclasses
import logging
from typing import Any

import httpx

from chat_relay.application.dto.notification import ActivityRecord, NotificationRecord
from chat_relay.application.exceptions import NotificationApiError, NotificationApiNotConfigured

logger = logging.getLogger(__name__)

SERVER_REQUEST_HEADER = "X-Server-Request"
NOTIFICATIONS_PATH = "/api/notifications"
USER_ACTIVITY_PATH = "/api/user-activity"


class HttpNotificationStore:
    """Implements application.ports.notifications.NotificationStore."""

    def __init__(self, client: httpx.AsyncClient, base_url: str | None) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/") if base_url else None

    @property
    def configured(self) -> bool:
        return self._base_url is not None

    async def save_notification(self, record: NotificationRecord) -> None:
        await self._post(NOTIFICATIONS_PATH, dataclasses.asdict(record))

    async def save_user_activity(self, record: ActivityRecord) -> None:
        await self._post(USER_ACTIVITY_PATH, dataclasses.asdict(record))

    async def _post(self, path: str, body: dict[str, Any]) -> None:
        if self._base_url is None:
            raise NotificationApiNotConfigured("NOTIFICATIONS_API_URL is not set")
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.post(
                url,
                json=body,
                headers={SERVER_REQUEST_HEADER: "true"},
            )
        except httpx.HTTPError as exc:
            raise NotificationApiError(f"POST {path} failed: {exc!r}") from exc
        if response.is_error:
            raise NotificationApiError(
                f"POST {path} returned {response.status_code}: {response.text[:200]}"
            )
