"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

from shared.observability import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get(
    "/health",
    summary="Health check",
    description="Basic health check endpoint.",
)
async def health():
    """Basic health check."""
    return {"status": "healthy", "service": "secret-sync"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if service is ready to receive traffic.",
)
async def ready(request: Request):
    """Readiness check.

    Verifies the hub (and, in agent mode, the member) API is reachable.
    """
    checks = {"hub": False}

    try:
        checks["hub"] = await request.app.state.hub_store.ping()
    except Exception as e:
        logger.warning("Hub readiness check failed", error=str(e))

    spoke_store = getattr(request.app.state, "spoke_store", None)
    if spoke_store is not None:
        checks["spoke"] = False
        try:
            checks["spoke"] = await spoke_store.ping()
        except Exception as e:
            logger.warning("Member readiness check failed", error=str(e))

    all_ready = all(checks.values())

    return {
        "status": "ready" if all_ready else "not_ready",
        "checks": checks,
    }
