from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class ClientSession:
    user_id: str | None
    conversation_id: str | None
    connected_at: datetime
