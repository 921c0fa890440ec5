from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class NotificationRecord:
    """Recipient-centric notification handed to the notifications API."""

    user_id: str | None
    type: str
    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ActivityRecord:
    """Sender-centric audit entry handed to the user-activity API."""

    user_id: str
    type: str
    title: str
    description: str
    category: str
    visibility: str
    data: dict[str, Any] = field(default_factory=dict)
