"""
Health check endpoints
"""

from typing import Any
import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text

from app.core.database import get_session
from app.core.redis import ping_redis
from app.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/live")
async def liveness() -> Any:
    """
    Kubernetes liveness probe
    """
    return {"status": "alive", "service": "busline-api"}


@router.get("/ready")
async def readiness(db: AsyncSession = Depends(get_session)) -> Any:
    """
    Kubernetes readiness probe - checks all dependencies
    """
    checks = {"database": False, "api": True}

    try:
        result = await db.execute(text("SELECT 1"))
        checks["database"] = result.scalar() == 1
    except SQLAlchemyError as e:
        logger.warning(f"Database readiness check failed: {e}")

    if settings.CACHE_BACKEND == "redis":
        checks["redis"] = await ping_redis()

    all_healthy = all(checks.values())
    body = {
        "status": "ready" if all_healthy else "not ready",
        "checks": checks,
        "version": settings.APP_VERSION
    }
    return JSONResponse(status_code=200 if all_healthy else 503, content=body)
