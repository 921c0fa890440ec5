from __future__ import annotations

from enum import StrEnum


class InboundType(StrEnum):
    TYPING_UPDATE = "typing_update"
    NEW_MESSAGE = "new_message"
    USER_PRESENCE = "user_presence"
    FOLLOW = "follow"


class NotificationType(StrEnum):
    MESSAGE = "message"
    FOLLOW = "follow"


class FollowAction(StrEnum):
    FOLLOW = "follow"
    UNFOLLOW = "unfollow"
