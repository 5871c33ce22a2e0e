"""
Admin endpoints
Ledger maintenance and question edits; the admin role check happens upstream
of this service.
"""

from fastapi import APIRouter, Depends, status

from quizrank.api.deps import get_current_user_id, get_services
from quizrank.core.exceptions import ValidationException
from quizrank.schemas.leaderboard import RebuildReport
from quizrank.schemas.quiz import QuestionAdminOut, QuestionCreate, QuestionUpdate
from quizrank.services.registry import Services

router = APIRouter()


@router.post("/leaderboard/rebuild", response_model=RebuildReport)
async def rebuild_leaderboard(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Recompute every cumulative score from attempts and rewrite the ledger"""
    return await services.leaderboard.rebuild_from_attempts()


@router.post(
    "/questions",
    response_model=QuestionAdminOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_question(
    question: QuestionCreate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    fields = question.model_dump()
    category_id = fields.pop("category_id")
    return await services.quizzes.create_question(category_id, **fields)


@router.patch("/questions/{question_id}", response_model=QuestionAdminOut)
async def update_question(
    question_id: int,
    changes: QuestionUpdate,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Partial edit; setting is_active to false retires the question"""
    fields = {
        field: value
        for field, value in changes.model_dump(exclude_unset=True).items()
        # explanation is the only nullable column
        if value is not None or field == "explanation"
    }
    if not fields:
        raise ValidationException("No fields to update")
    return await services.quizzes.update_question(question_id, **fields)
