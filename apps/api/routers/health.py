"""
Health check endpoints.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis.asyncio as redis

from config import settings
from database import engine

router = APIRouter()


async def _check_database() -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "up"
    except Exception as e:
        return f"down: {str(e)}"


async def _check_redis() -> str:
    try:
        r = redis.from_url(settings.REDIS_URL)
        try:
            await r.ping()
        finally:
            await r.aclose()
        return "up"
    except Exception as e:
        return f"down: {str(e)}"


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns database, Redis and billing queue status.
    """
    health_status = {
        "status": "healthy",
        "api": "up",
        "database": await _check_database(),
        "redis": await _check_redis(),
        "billing_queue": settings.BILLING_QUEUE_NAME,
    }
    if health_status["database"] != "up" or health_status["redis"] != "up":
        health_status["status"] = "degraded"
    return health_status


@router.get("/health/ready")
async def readiness_check():
    """Readiness probe: the ledger cannot serve requests without its database."""
    database = await _check_database()
    if database != "up":
        return JSONResponse(
            status_code=503,
            content={"ready": False, "database": database},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Liveness probe."""
    return {"alive": True}
