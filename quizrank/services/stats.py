"""
Stats aggregator
Read-side projections computed on demand from quiz attempts and, for rank,
from the score ledger. Nothing here is a source of truth.
"""

import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload
from starlette.concurrency import run_in_threadpool

from quizrank.core.config import settings
from quizrank.core.database import SessionFactory, session_scope
from quizrank.core.exceptions import (
    AuthorizationException,
    NotFoundException,
    UnavailableException,
)
from quizrank.models.quiz import AttemptAnswer, QuizAttempt, QuizCategory
from quizrank.schemas.stats import (
    AnswerOut,
    AttemptDetail,
    AttemptSummary,
    CategoryProgress,
    CategoryRef,
    CategoryStats,
    LeaderboardStanding,
    LeaderboardSummary,
    Performance,
    UserOverview,
)
from quizrank.services.ledger import ScoreLedger
from quizrank.utils.validators import validate_record_id, validate_user_id

logger = logging.getLogger(__name__)

_last_played = func.max(func.coalesce(QuizAttempt.updated_at, QuizAttempt.created_at))


def percent(part: int, whole: int) -> int:
    """Rounded percentage, half up; 0 when ``whole`` is 0"""
    if not whole:
        return 0
    return int(part * 100 / whole + 0.5)


def format_duration(seconds: Optional[int]) -> Optional[str]:
    if seconds is None or seconds < 0:
        return None
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"


def motivation_message(position: Optional[int]) -> str:
    if position is None:
        return "Play quizzes to get ranked"
    if position == 1:
        return "Outstanding! You are #1"
    if position <= 3:
        return "Outstanding! You are one of the top performers"
    if position <= 10:
        return "Great job! You're in the top 10"
    return "Keep going! You can climb the leaderboard"


def _category_ref(category: QuizCategory) -> CategoryRef:
    return CategoryRef(
        id=category.id,
        name=category.name,
        image_url=category.image_url,
        total_time_seconds=category.total_time_seconds,
    )


def _summary_fields(attempt: QuizAttempt) -> dict:
    incorrect = max(attempt.answered_count - attempt.correct_count, 0)
    return dict(
        attempt_id=attempt.id,
        category=_category_ref(attempt.category),
        total_questions=attempt.total_questions,
        answered_questions=attempt.answered_count,
        correct_answers=attempt.correct_count,
        incorrect_answers=incorrect,
        total_score=attempt.total_score,
        accuracy_percent=percent(attempt.correct_count, attempt.total_questions),
        is_complete=attempt.total_questions > 0
        and attempt.answered_count >= attempt.total_questions,
        time_taken_seconds=attempt.time_taken_seconds,
        time_taken_formatted=format_duration(attempt.time_taken_seconds),
        created_at=attempt.created_at,
    )


class StatsAggregator:
    def __init__(self, session_factory: SessionFactory, ledger: ScoreLedger):
        self.session_factory = session_factory
        self.ledger = ledger

    async def standing(self, user_id: str) -> LeaderboardStanding:
        """Ledger score and rank; empty standing when the ledger is unreachable"""
        try:
            score = await self.ledger.score_of(user_id)
            rank = await self.ledger.rank(user_id)
        except UnavailableException as e:
            logger.warning(f"Leaderboard standing unavailable for {user_id}: {e.message}")
            return LeaderboardStanding()
        return LeaderboardStanding(
            score=score,
            rank=rank,
            position=None if rank is None else rank + 1,
        )

    async def user_overview(self, user_id: str) -> UserOverview:
        validate_user_id(user_id)
        row = await run_in_threadpool(self._overview_row, user_id)
        played, total, correct, questions, best, average, last_played = row
        return UserOverview(
            quizzes_played=played or 0,
            total_score=total or 0,
            best_score=best or 0,
            average_score=round(float(average or 0), 2),
            total_correct=correct or 0,
            total_questions=questions or 0,
            last_played_at=last_played,
            leaderboard=await self.standing(user_id),
        )

    def _overview_row(self, user_id: str):
        with session_scope(self.session_factory) as session:
            return session.execute(
                select(
                    func.count(QuizAttempt.id),
                    func.sum(QuizAttempt.total_score),
                    func.sum(QuizAttempt.correct_count),
                    func.sum(QuizAttempt.total_questions),
                    func.max(QuizAttempt.total_score),
                    func.avg(QuizAttempt.total_score),
                    _last_played,
                ).where(QuizAttempt.user_id == user_id)
            ).one()

    async def performance(self, user_id: str) -> Performance:
        validate_user_id(user_id)
        overview = await run_in_threadpool(self._overview_row, user_id)
        return Performance(
            quizzes_played=overview[0] or 0,
            total_score=overview[1] or 0,
            total_correct=overview[2] or 0,
        )

    async def user_category_breakdown(self, user_id: str) -> List[CategoryStats]:
        validate_user_id(user_id)
        return await run_in_threadpool(self._category_breakdown, user_id)

    def _category_breakdown(self, user_id: str) -> List[CategoryStats]:
        with session_scope(self.session_factory) as session:
            total_score = func.sum(QuizAttempt.total_score)
            rows = session.execute(
                select(
                    QuizCategory,
                    func.count(QuizAttempt.id),
                    total_score,
                    func.max(QuizAttempt.total_score),
                    func.avg(QuizAttempt.total_score),
                    func.sum(QuizAttempt.correct_count),
                    func.sum(QuizAttempt.total_questions),
                    _last_played,
                )
                .select_from(QuizAttempt)
                .join(QuizCategory, QuizCategory.id == QuizAttempt.category_id)
                .where(QuizAttempt.user_id == user_id)
                .group_by(QuizCategory.id)
                .order_by(total_score.desc(), QuizCategory.id)
            ).all()

            breakdown = []
            for category, played, total, best, average, correct, questions, last in rows:
                correct = correct or 0
                questions = questions or 0
                breakdown.append(
                    CategoryStats(
                        category=_category_ref(category),
                        quizzes_played=played,
                        total_score=total or 0,
                        best_score=best or 0,
                        average_score=round(float(average or 0), 2),
                        total_correct=correct,
                        total_questions=questions,
                        total_incorrect=max(questions - correct, 0),
                        accuracy_percent=percent(correct, questions),
                        last_played_at=last,
                    )
                )
            return breakdown

    async def recent_attempts(self, user_id: str, limit: Optional[int] = None) -> List[AttemptSummary]:
        validate_user_id(user_id)
        limit = limit or settings.RECENT_ATTEMPTS_DEFAULT_LIMIT
        limit = max(1, min(limit, settings.RECENT_ATTEMPTS_MAX_LIMIT))
        return await run_in_threadpool(self._recent_attempts, user_id, limit)

    def _recent_attempts(self, user_id: str, limit: int) -> List[AttemptSummary]:
        with session_scope(self.session_factory) as session:
            attempts = session.scalars(
                select(QuizAttempt)
                .options(selectinload(QuizAttempt.category))
                .where(QuizAttempt.user_id == user_id)
                .order_by(
                    func.coalesce(QuizAttempt.updated_at, QuizAttempt.created_at).desc(),
                    QuizAttempt.id.desc(),
                )
                .limit(limit)
            ).all()
            return [AttemptSummary(**_summary_fields(attempt)) for attempt in attempts]

    async def attempt_summary(self, user_id: str, attempt_id: int) -> AttemptSummary:
        validate_user_id(user_id)
        validate_record_id(attempt_id, "attempt_id")
        return await run_in_threadpool(self._attempt_summary, user_id, attempt_id)

    def _attempt_summary(self, user_id: str, attempt_id: int) -> AttemptSummary:
        with session_scope(self.session_factory) as session:
            attempt = self._owned_attempt(session, user_id, attempt_id)
            return AttemptSummary(**_summary_fields(attempt))

    async def attempt_detail(self, user_id: str, attempt_id: int) -> AttemptDetail:
        validate_user_id(user_id)
        validate_record_id(attempt_id, "attempt_id")
        return await run_in_threadpool(self._attempt_detail, user_id, attempt_id)

    def _attempt_detail(self, user_id: str, attempt_id: int) -> AttemptDetail:
        with session_scope(self.session_factory) as session:
            attempt = self._owned_attempt(session, user_id, attempt_id)
            answers = session.scalars(
                select(AttemptAnswer)
                .options(selectinload(AttemptAnswer.question))
                .where(AttemptAnswer.attempt_id == attempt.id)
                .order_by(AttemptAnswer.id)
            ).all()
            return AttemptDetail(
                **_summary_fields(attempt),
                answers=[
                    AnswerOut(
                        question_id=answer.question_id,
                        question_text=answer.question.text,
                        options=list(answer.question.options),
                        selected_option=answer.selected_option,
                        correct_option=answer.correct_option,
                        is_correct=answer.is_correct,
                        points_awarded=answer.points_awarded,
                        answered_at=answer.answered_at,
                    )
                    for answer in answers
                ],
            )

    @staticmethod
    def _owned_attempt(session: Session, user_id: str, attempt_id: int) -> QuizAttempt:
        attempt = session.get(QuizAttempt, attempt_id)
        if attempt is None:
            raise NotFoundException("Result", details={"attempt_id": attempt_id})
        if attempt.user_id != user_id:
            raise AuthorizationException("Access Denied")
        return attempt

    async def leaderboard_summary(
        self, user_id: str, categories_available: Optional[int] = None
    ) -> LeaderboardSummary:
        """
        Leaderboard context for one user

        Args:
            user_id: Caller
            categories_available: Categories in the caller's plan; None counts
                every category in the catalogue
        """
        validate_user_id(user_id)
        played, correct, questions, categories_played, catalogue_size = await run_in_threadpool(
            self._summary_counts, user_id
        )
        available = catalogue_size if categories_available is None else categories_available
        completed_percent = percent(categories_played, available or categories_played or 1)

        standing = await self.standing(user_id)
        points = standing.score
        if points is None and standing.rank is None and await self.ledger.is_available():
            points = 0

        return LeaderboardSummary(
            quizzes_played=played,
            points=points,
            position=standing.position,
            message=motivation_message(standing.position),
            accuracy_percent=percent(correct, questions),
            category_progress=CategoryProgress(
                total_categories_available=available,
                completed_categories=categories_played,
                pending_categories=max(available - categories_played, 0),
                completed_percent=completed_percent,
                pending_percent=100 - completed_percent,
            ),
        )

    def _summary_counts(self, user_id: str):
        with session_scope(self.session_factory) as session:
            played, correct, questions, categories = session.execute(
                select(
                    func.count(QuizAttempt.id),
                    func.coalesce(func.sum(QuizAttempt.correct_count), 0),
                    func.coalesce(func.sum(QuizAttempt.total_questions), 0),
                    func.count(func.distinct(QuizAttempt.category_id)),
                ).where(QuizAttempt.user_id == user_id)
            ).one()
            catalogue_size = session.scalar(select(func.count(QuizCategory.id))) or 0
            return played, correct, questions, categories, catalogue_size
