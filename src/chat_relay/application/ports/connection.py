from __future__ import annotations

from typing import Protocol


class Connection(Protocol):
    """One live bidirectional channel to a client."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, data: str) -> None: ...
