"""
Health endpoint.

Reports database connectivity and lifecycle scheduler state. A stopped
scheduler counts as degraded only when it is supposed to run. Needs no
caller identity.
"""

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

from ..core.database import health_check
from ..version import __version__


def _scheduler_report(container) -> Dict[str, Any]:
    if not container.get("settings").scheduler_enabled:
        return {"enabled": False, "running": False, "last_tick": None}

    scheduler = container.get("scheduler")
    last_tick = scheduler.last_tick
    return {
        "enabled": True,
        "running": scheduler.is_running,
        "last_tick": last_tick.to_dict() if last_tick else None,
    }


def create_health_router() -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    async def health_endpoint(request: Request) -> Dict[str, Any]:
        state = request.app.state
        database_ok = await health_check(state.container.get("session_factory"))
        scheduler = _scheduler_report(state.container)
        scheduler_ok = scheduler["running"] or not scheduler["enabled"]

        return {
            "status": "healthy" if database_ok and scheduler_ok else "degraded",
            "service": "will-engine",
            "version": __version__,
            "uptime_seconds": round(time.monotonic() - state.started_at, 2),
            "database": "connected" if database_ok else "disconnected",
            "scheduler": scheduler,
        }

    return router
