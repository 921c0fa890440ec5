"""Per-conversation presence bookkeeping."""
from __future__ import annotations

from collections import Counter


class PresenceTracker:
    """Which users are joined to which conversation.

    Counts are kept per (conversation, user) so a user with two tabs open on
    the same conversation stays present until both are gone.
    """

    def __init__(self) -> None:
        self._members: dict[str, Counter[str]] = {}

    def on_join(self, conversation_id: str | None, user_id: str | None) -> None:
        if not conversation_id or not user_id:
            return
        self._members.setdefault(conversation_id, Counter())[user_id] += 1

    def on_leave(self, conversation_id: str | None, user_id: str | None) -> None:
        if not conversation_id or not user_id:
            return
        members = self._members.get(conversation_id)
        if not members or user_id not in members:
            return
        members[user_id] -= 1
        if members[user_id] <= 0:
            del members[user_id]
        if not members:
            del self._members[conversation_id]

    def members_of(self, conversation_id: str) -> frozenset[str]:
        return frozenset(self._members.get(conversation_id, ()))

    def conversations(self) -> list[str]:
        return list(self._members)
