from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from chat_relay.api.v1.routers import health, ws
from chat_relay.application.ports.directory import ParticipantDirectory
from chat_relay.application.ports.notifications import NotificationStore
from chat_relay.config import settings
from chat_relay.infrastructure.db.repositories.participant import SqlParticipantDirectory
from chat_relay.infrastructure.db.session import AsyncSessionLocal, engine
from chat_relay.infrastructure.http.notification_api import HttpNotificationStore
from chat_relay.infrastructure.ws.broadcaster import Broadcaster
from chat_relay.infrastructure.ws.presence import PresenceTracker
from chat_relay.infrastructure.ws.reaper import ConnectionReaper
from chat_relay.infrastructure.ws.registry import ConnectionRegistry
from chat_relay.services.notification_service import NotificationDispatcher
from chat_relay.services.routing_service import MessageRouter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    http_client = httpx.AsyncClient(timeout=settings.NOTIFICATIONS_HTTP_TIMEOUT)
    if not settings.NOTIFICATIONS_API_URL:
        logger.warning("NOTIFICATIONS_API_URL is not set; notifications will not be persisted")

    directory: ParticipantDirectory | None = app.state.directory
    if directory is None:
        directory = SqlParticipantDirectory(AsyncSessionLocal)
    store: NotificationStore | None = app.state.notification_store
    if store is None:
        store = HttpNotificationStore(http_client, settings.NOTIFICATIONS_API_URL)

    registry = ConnectionRegistry()
    dispatcher = NotificationDispatcher(directory, store)
    relay = MessageRouter(
        registry,
        PresenceTracker(),
        Broadcaster(registry),
        dispatcher,
    )
    app.state.relay = relay

    reaper = ConnectionReaper(
        relay,
        registry,
        settings.REAPER_INTERVAL_SECONDS,
        announce_offline=settings.REAPER_ANNOUNCE_OFFLINE,
    )
    await reaper.start()
    logger.info("WebSocket relay is ready to handle connections")

    yield

    await reaper.stop()
    logger.info(
        "Shutting down with %d open connections, draining %d notification calls",
        len(registry), dispatcher.pending,
    )
    await dispatcher.drain(timeout=settings.SHUTDOWN_GRACE_SECONDS)
    await http_client.aclose()
    await engine.dispose()
    logger.info("WebSocket relay stopped")


def create_app(
    *,
    directory: ParticipantDirectory | None = None,
    notification_store: NotificationStore | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Chat Relay",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.directory = directory
    app.state.notification_store = notification_store

    app.include_router(health.router)
    app.include_router(ws.router)

    return app
