"""Periodic sweep for connections that died without a close frame."""
from __future__ import annotations

import asyncio
import logging

from chat_relay.infrastructure.ws.registry import ConnectionRegistry
from chat_relay.services.routing_service import MessageRouter

logger = logging.getLogger(__name__)


class ConnectionReaper:
    """Background task that drops registry entries whose channel is no longer open."""

    def __init__(
        self,
        router: MessageRouter,
        registry: ConnectionRegistry,
        interval: float,
        *,
        announce_offline: bool = True,
    ) -> None:
        self._router = router
        self._registry = registry
        self._interval = interval
        self._announce_offline = announce_offline
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name="ws-connection-reaper")
        logger.info("Connection reaper started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Connection reaper stopped")

    async def sweep(self) -> int:
        reaped = 0
        for connection, session in self._registry.items():
            if connection.is_open:
                continue
            logger.info("Cleaning up dead connection for user %s", session.user_id)
            await self._router.disconnect(connection, announce=self._announce_offline)
            reaped += 1
        return reaped

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Connection reaper sweep error")
