"""
Quiz play endpoints
Start a category, submit answers, read results
"""

from typing import List

from fastapi import APIRouter, Depends

from quizrank.api.deps import get_current_user_id, get_services, require_category_access
from quizrank.schemas.leaderboard import LeaderboardEntry
from quizrank.schemas.quiz import QuestionSetPayload, SubmitAnswerRequest, SubmitAnswerResponse
from quizrank.schemas.stats import AttemptDetail, Performance
from quizrank.services.access import ensure_category_access
from quizrank.services.registry import Services

router = APIRouter()


@router.get("/category/{category_id}", response_model=QuestionSetPayload)
async def start_quiz(
    category_id: int = Depends(require_category_access),
    services: Services = Depends(get_services),
):
    """Question set for a category (correct options withheld)"""
    return await services.quizzes.start_quiz(category_id)


@router.post("/submit", response_model=SubmitAnswerResponse)
async def submit_answer(
    submission: SubmitAnswerRequest,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Score one answer; exactly one response, with a bonus only on completion"""
    await ensure_category_access(services.access_gate, user_id, submission.category_id)

    outcome = await services.quizzes.submit_answer(
        user_id,
        submission.category_id,
        submission.question_id,
        submission.selected_option,
    )
    if outcome.bonus is not None:
        message = "Answer submitted successfully, here's a joke:"
    elif outcome.replayed:
        message = "Answer already submitted"
    else:
        message = "Answer submitted successfully"

    return SubmitAnswerResponse(
        **outcome.result.model_dump(),
        message=message,
        ledger_synced=outcome.ledger_synced,
        bonus=outcome.bonus,
    )


@router.get("/result/{attempt_id}", response_model=AttemptDetail)
async def get_quiz_result(
    attempt_id: int,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return await services.stats.attempt_detail(user_id, attempt_id)


@router.get("/performance", response_model=Performance)
async def get_performance(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    return await services.stats.performance(user_id)


@router.get("/leaderboard", response_model=List[LeaderboardEntry])
async def get_leaderboard(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Top players"""
    return await services.leaderboard.top()
