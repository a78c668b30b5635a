"""
Health Check Router

Provides health check endpoints for monitoring application status,
including reachability of the primary package storage tier.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
import time
import os
import logging
from datetime import datetime

from scorm_player.services.package_store import (
    PackageStore,
    get_package_store,
)

router = APIRouter()
logger = logging.getLogger(__name__)

# Application start time for uptime calculation
_start_time = time.time()


class HealthCheckResponse(BaseModel):
    status: str
    version: str
    environment: str
    timestamp: datetime
    uptime: float


async def _primary_tier_available(store: PackageStore) -> bool:
    try:
        async with store.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Primary storage tier unavailable: {e}")
        return False


@router.get("/health", response_model=HealthCheckResponse, summary="Basic Health Check")
async def health_check():
    """
    Basic health check endpoint

    Returns application status, version, and environment information.
    """
    return HealthCheckResponse(
        status="healthy",
        version=os.getenv("APP_VERSION", "1.0.0"),
        environment=os.getenv("ENVIRONMENT", "development"),
        timestamp=datetime.utcnow(),
        uptime=time.time() - _start_time,
    )


@router.get("/health/ready", summary="Readiness Check")
async def readiness_check(store: PackageStore = Depends(get_package_store)):
    """
    Readiness probe

    Uploads keep working on the degraded catalog tier when the database is
    down, so an unreachable database reports ``degraded`` instead of failing.
    """
    primary = await _primary_tier_available(store)
    return {
        "status": "ready" if primary else "degraded",
        "storage": {
            "primary": primary,
            "fallbackCatalog": str(store.catalog.path),
        },
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/live", summary="Liveness Check")
async def liveness_check():
    """
    Liveness probe

    Returns 200 if the application is alive and responding.
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat(),
        "pid": os.getpid()
    }
