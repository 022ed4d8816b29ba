"""
Health check endpoints.
"""
from fastapi import APIRouter, Depends

from orderfeed.api.deps import get_realtime_service
from orderfeed.core.metrics import update_service_health
from orderfeed.services.realtime.service import RealtimeService

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    """Basic health check."""
    return {"status": "healthy"}


@router.get("/health/detailed")
async def detailed_health_check(
    service: RealtimeService = Depends(get_realtime_service),
) -> dict:
    """Detailed health check including the order backend."""
    checks = {
        "api": "healthy",
        "backend": "unknown",
    }

    try:
        healthy = await service.backend.health_check()
        checks["backend"] = "healthy" if healthy else "unhealthy"
    except Exception as e:
        healthy = False
        checks["backend"] = f"unhealthy: {str(e)}"
    update_service_health("appwrite", healthy)

    overall = "healthy" if all(
        v == "healthy" for v in checks.values()
    ) else "degraded"

    return {
        "status": overall,
        "checks": checks,
        "realtime": service.get_metrics(),
    }
