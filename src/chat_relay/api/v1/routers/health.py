from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from chat_relay.api.deps import RouterDep
from chat_relay.infrastructure.db.session import AsyncSessionLocal

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz(relay: RouterDep) -> dict[str, object]:
    return {
        "status": "ok",
        "connections": len(relay.registry),
        "conversations": len(relay.presence.conversations()),
    }


@router.get("/readyz")
async def readyz(relay: RouterDep) -> JSONResponse:
    errors: list[str] = []

    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        errors.append(f"postgres: {exc}")

    store = relay.dispatcher.store
    if not getattr(store, "configured", True):
        errors.append("notifications: NOTIFICATIONS_API_URL is not set")

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors},
        )
    return JSONResponse(content={"status": "ready"})
