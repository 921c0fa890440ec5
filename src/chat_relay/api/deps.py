"""FastAPI dependency helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from chat_relay.services.routing_service import MessageRouter


def get_router(conn: HTTPConnection) -> MessageRouter:
    return conn.app.state.relay


RouterDep = Annotated[MessageRouter, Depends(get_router)]
