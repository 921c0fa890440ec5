from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of session and envelope timestamps."""

    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def isoformat_now(clock: Clock) -> str:
    """Wire format for timestamps in outbound envelopes."""
    return clock.now().isoformat()
