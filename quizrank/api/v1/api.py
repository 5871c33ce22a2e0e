"""
API v1 main router
Combines all v1 endpoint routers
"""

from fastapi import APIRouter

from quizrank.api.v1.endpoints import admin, health, play, stats

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(play.router, prefix="/play", tags=["Play"])
api_router.include_router(stats.router, prefix="/stats", tags=["Stats"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])
