"""WebSocket message models: inbound variants and outbound envelopes."""
from __future__ import annotations

import json
import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError

from chat_relay.domain.value_objects.enums import InboundType

logger = logging.getLogger(__name__)


class _Inbound(BaseModel):
    """Client → Server. The decoded payload is kept for passthrough."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    _raw: dict[str, Any] = PrivateAttr(default_factory=dict)

    @property
    def raw(self) -> dict[str, Any]:
        return self._raw


class TypingUpdate(_Inbound):
    type: str = "typing_update"
    conversation_id: str = Field(alias="conversationId")
    user_id: str | None = Field(default=None, alias="userId")


class MessageSender(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    first_name: str | None = None
    username: str | None = None

    @property
    def display_name(self) -> str:
        return self.first_name or self.username or "Someone"


class ChatMessage(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    conversation_id: str
    sender_id: str
    content: str
    sender: MessageSender | None = None

    @property
    def sender_name(self) -> str:
        if self.sender is None:
            return "Someone"
        return self.sender.display_name


class NewMessage(_Inbound):
    type: str = "new_message"
    message: ChatMessage
    user_id: str | None = Field(default=None, alias="userId")


class UserPresence(_Inbound):
    type: str = "user_presence"
    user_id: str = Field(alias="userId")
    is_online: bool | None = Field(default=None, alias="isOnline")


class Follow(_Inbound):
    type: str = "follow"
    action: str
    followed_id: str = Field(alias="followedId")
    follower_id: str = Field(alias="followerId")
    follower_name: str | None = Field(default=None, alias="followerName")
    timestamp: str | None = None


class Other(_Inbound):
    """Any tag the relay does not interpret; passed through unchanged."""

    type: str


InboundMessage = TypingUpdate | NewMessage | UserPresence | Follow | Other

_VARIANTS: dict[str, type[_Inbound]] = {
    InboundType.TYPING_UPDATE.value: TypingUpdate,
    InboundType.NEW_MESSAGE.value: NewMessage,
    InboundType.USER_PRESENCE.value: UserPresence,
    InboundType.FOLLOW.value: Follow,
}


def classify(raw: str | bytes, *, user_id: str | None = None) -> InboundMessage | None:
    """Decode a raw frame into its variant, or None if it must be dropped.

    ``user_id`` is the sender known from the connection; it is injected into
    the payload when the client left ``userId`` out.
    """
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError):
        logger.warning("Dropping undecodable payload: %.200r", raw)
        return None

    tag = payload.get("type") if isinstance(payload, dict) else None
    if not tag or not isinstance(tag, str):
        logger.warning("Dropping payload without a type tag: %.200r", raw)
        return None

    if user_id and not payload.get("userId"):
        payload["userId"] = user_id

    model = _VARIANTS.get(tag, Other)
    try:
        msg = model.model_validate(payload)
    except ValidationError as exc:
        logger.warning(
            "Dropping malformed %s payload: %d error(s)",
            tag, exc.error_count(),
        )
        return None
    msg._raw = payload
    return msg  # type: ignore[return-value]


class _Outbound(BaseModel):
    """Server → Client. Serialised with camelCase aliases where the wire uses them."""

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True)


class PresenceEnvelope(_Outbound):
    type: Literal["user_presence"] = "user_presence"
    user_id: str = Field(serialization_alias="userId")
    is_online: bool = Field(serialization_alias="isOnline")


class NotificationBody(BaseModel):
    id: str
    user_id: str | None
    type: str
    title: str
    message: str
    data: dict[str, Any] = {}
    read: bool = False
    created_at: str
    category: str
    priority: str = "normal"


class NotificationEnvelope(_Outbound):
    type: Literal["new_notification"] = "new_notification"
    notification: NotificationBody


class MessageRelayEnvelope(_Outbound):
    type: Literal["new_message"] = "new_message"
    sender_name: str = Field(serialization_alias="senderName")
    content: str
    conversation_id: str = Field(serialization_alias="conversationId")
    message_id: str = Field(serialization_alias="messageId")


class FollowNotificationEnvelope(_Outbound):
    """Legacy follow envelope kept for older clients."""

    type: Literal["follow_notification"] = "follow_notification"
    follower_id: str = Field(serialization_alias="followerId")
    followed_id: str = Field(serialization_alias="followedId")
    follower_name: str | None = Field(serialization_alias="followerName")
    action: str
    timestamp: str


Envelope = _Outbound | dict[str, Any]


def encode_envelope(envelope: Envelope) -> str:
    if isinstance(envelope, _Outbound):
        return envelope.encode()
    return json.dumps(envelope)
