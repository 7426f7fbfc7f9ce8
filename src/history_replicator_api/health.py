from typing import Any

from fastapi import APIRouter, Request

from history_replicator import __version__

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> dict[str, Any]:
    """Availability of every store. Unconfigured stores are reported, not fatal."""
    stores = request.app.state.read_service.availability()
    return {
        "status": "healthy" if all(stores.values()) else "degraded",
        "stores": stores,
        "version": __version__,
    }


@router.get("/ready")
async def readiness_check() -> dict[str, Any]:
    """Readiness check for Kubernetes."""
    return {"status": "ready"}
