from __future__ import annotations

from fastapi import APIRouter

from apkstage.core.observability.metrics import inc_named

router = APIRouter()


@router.get("/health/live")
async def live():
    inc_named("health_live")
    return {"status": "ok"}
