from __future__ import annotations

from typing import Protocol


class ParticipantDirectory(Protocol):
    async def active_participant_ids(self, conversation_id: str) -> list[str]: ...
