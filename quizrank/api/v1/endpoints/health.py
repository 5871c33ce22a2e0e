"""
Health check endpoints
"""

import psutil
from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from quizrank.api.deps import get_services
from quizrank.core.config import settings
from quizrank.core.database import DatabaseHealthCheck
from quizrank.services.registry import Services

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/health/detailed")
async def detailed_health_check(services: Services = Depends(get_services)):
    """Detailed health check"""
    health_status = {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "checks": {},
    }

    # Check database
    session = services.session_factory()
    try:
        bind = session.get_bind()
    finally:
        session.close()
    database = await run_in_threadpool(DatabaseHealthCheck.check_connection, bind)
    health_status["checks"]["database"] = database["status"]
    if database["status"] != "healthy":
        health_status["status"] = "degraded"

    # Check Redis
    if services.redis is None or not services.redis.is_connected:
        health_status["checks"]["redis"] = "disconnected"
    else:
        health_status["checks"]["redis"] = (
            "healthy" if await services.redis.ping() else "unhealthy"
        )

    # Check leaderboard ledger
    if await services.ledger.is_available():
        health_status["checks"]["leaderboard"] = {
            "status": "healthy",
            "backend": type(services.ledger).__name__,
            "entries": await services.ledger.size(),
        }
    else:
        health_status["checks"]["leaderboard"] = {"status": "unavailable"}
        health_status["status"] = "degraded"

    # Check system resources
    memory = psutil.virtual_memory()
    health_status["checks"]["resources"] = {
        "cpu_percent": psutil.cpu_percent(interval=None),
        "memory_percent": memory.percent,
        "memory_available_mb": memory.available / (1024 * 1024),
    }

    return health_status
