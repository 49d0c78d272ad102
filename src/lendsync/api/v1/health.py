"""Health check endpoints.

Provides the plain-text root banner (/) that LendSaaS and uptime checks
hit, and a JSON liveness check (/health). No external dependencies are
checked -- Pipedrive is only reported as configured or not.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from src.lendsync.config import get_settings

router = APIRouter(tags=["health"])

BANNER = "LendSaaS Integration Running"


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    """Plain-text confirmation that the service is up."""
    return BANNER


@router.get("/health")
async def health_check():
    """Basic liveness check."""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT.value,
        "pipedrive": "configured" if settings.pipedrive_configured() else "not_configured",
    }
