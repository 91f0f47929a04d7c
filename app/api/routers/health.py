"""
Health check endpoints for monitoring and orchestration (K8s, Docker, etc.)

Provides multiple health check endpoints:
- /health: Basic liveness check (always returns 200)
- /health/db: Database connectivity check
- /health/ready: Readiness check (database plus at least one flight provider)
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_bundle, get_session
from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()

SERVICE_NAME = "flight-booking-api"


async def _database_ok(session: AsyncSession) -> bool:
    try:
        result = await session.execute(text("SELECT 1"))
        result.scalar()
        return True
    except Exception as e:
        logger.error("Database health check failed", exc_info=e)
        return False


@router.get("/health")
async def health_check():
    """
    Basic liveness check.

    Returns 200 OK if the application is running.
    """
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/health/live")
async def health_check_live():
    """Alias for /health; some orchestrators prefer the /health/live name."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/health/db")
async def health_check_db(
    settings: Settings = Depends(get_settings),
    session: AsyncSession | None = Depends(get_session),
):
    """
    Database connectivity health check.

    Returns 503 Service Unavailable if the database is down. In in-memory mode
    there is no database to check.
    """
    if settings.use_in_memory:
        return {"status": "healthy", "component": "database", "mode": "in_memory"}

    if await _database_ok(session):
        return {"status": "healthy", "component": "database"}
    return JSONResponse(
        status_code=503,
        content={
            "status": "unhealthy",
            "component": "database",
            "error": "Database connection failed",
        },
    )


@router.get("/health/ready")
async def health_check_ready(
    settings: Settings = Depends(get_settings),
    session: AsyncSession | None = Depends(get_session),
    bundle=Depends(get_bundle),
):
    """
    Readiness check.

    Ready means the database answers (unless running in-memory) and at least
    one flight provider is configured. Returns 503 otherwise.
    """
    health_status = {"status": "ready", "checks": {}}

    if settings.use_in_memory:
        health_status["checks"]["database"] = "in_memory"
    elif await _database_ok(session):
        health_status["checks"]["database"] = "healthy"
    else:
        health_status["checks"]["database"] = "unhealthy"
        health_status["status"] = "not_ready"

    providers = [client.name for client in bundle["provider_router"].available()]
    health_status["checks"]["providers"] = providers or "none_configured"
    if not providers:
        health_status["status"] = "not_ready"

    if health_status["status"] != "ready":
        return JSONResponse(status_code=503, content=health_status)
    return health_status
