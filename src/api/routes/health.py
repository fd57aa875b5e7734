"""
Health check endpoints.
"""

from typing import Any, Dict

from fastapi import APIRouter, Request

from config.settings import get_settings


router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "marketplace-ranking",
    }


@router.get("/health/detailed")
async def detailed_health_check(request: Request) -> Dict[str, Any]:
    """Health plus session registry and configuration status."""
    settings = getattr(request.app.state, "settings", None) or get_settings()
    manager = request.app.state.session_manager
    return {
        "status": "healthy",
        "service": "marketplace-ranking",
        "environment": settings.environment,
        "checks": {
            "config": "ok",
            "storage_backend": settings.storage_backend,
            "aggregate_worker": "enabled" if settings.aggregate_worker_enabled else "disabled",
            "sessions": manager.get_stats(),
        },
    }


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe."""
    return {"status": "alive"}
