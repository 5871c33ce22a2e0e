"""
Stats endpoints
Per-user projections and the paginated leaderboard
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from quizrank.api.deps import get_current_user_id, get_services
from quizrank.core.config import settings
from quizrank.schemas.leaderboard import LeaderboardPage
from quizrank.schemas.stats import (
    AttemptSummary,
    CategoryStats,
    LeaderboardSummary,
    UserOverview,
)
from quizrank.services.registry import Services

router = APIRouter()


@router.get("/overview", response_model=UserOverview)
async def get_user_overview(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return await services.stats.user_overview(user_id)


@router.get("/by-category", response_model=List[CategoryStats])
async def get_user_category_breakdown(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return await services.stats.user_category_breakdown(user_id)


@router.get("/recent", response_model=List[AttemptSummary])
async def get_recent_attempts(
    limit: Optional[int] = Query(None, ge=1),
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return await services.stats.recent_attempts(user_id, limit)


@router.get("/leaderboard-summary", response_model=LeaderboardSummary)
async def get_leaderboard_summary(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    available = await services.access_gate.allowed_category_count(user_id)
    return await services.stats.leaderboard_summary(user_id, available)


@router.get("/leaderboard-list", response_model=LeaderboardPage)
async def get_leaderboard_page(
    page: int = Query(1),
    limit: int = Query(settings.LEADERBOARD_DEFAULT_PAGE_SIZE, ge=1),
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Paginated leaderboard; page size is capped at LEADERBOARD_MAX_PAGE_SIZE"""
    return await services.leaderboard.get_leaderboard_page(page, limit, caller_id=user_id)


@router.get("/attempt/{attempt_id}", response_model=AttemptSummary)
async def get_attempt_summary(
    attempt_id: int,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return await services.stats.attempt_summary(user_id, attempt_id)
