"""
Attempt accumulator

Scores one answer at a time into the (user, category) attempt and pushes the
user's cumulative score to the score ledger.

Each answer is applied in a single transaction: the answer row is inserted and
the attempt counters are bumped with ``SET x = x + delta``. Unique constraints
on (user_id, category_id) and (attempt_id, question_id) make the append
conditional across processes; within a process a keyed lock serializes writers
of the same attempt. Repeating an answered question returns the stored result.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from quizrank.core.database import SessionFactory
from quizrank.core.exceptions import (
    CategoryMismatchException,
    DatabaseException,
    NotFoundException,
    UnavailableException,
)
from quizrank.models.quiz import AttemptAnswer, Question, QuizAttempt
from quizrank.schemas.quiz import SubmissionOutcome, SubmissionResult
from quizrank.services.ledger import ScoreLedger
from quizrank.services.questions import count_active_questions
from quizrank.utils.locks import AsyncKeyedLock, KeyedLock
from quizrank.utils.validators import (
    validate_record_id,
    validate_selected_option,
    validate_user_id,
)

logger = logging.getLogger(__name__)


def _stored_result(answer: AttemptAnswer) -> SubmissionResult:
    return SubmissionResult(
        is_correct=answer.is_correct,
        correct_option=answer.correct_option,
        attempt_id=answer.attempt_id,
        running_total=answer.running_total,
        is_category_complete=answer.category_complete,
    )


def cumulative_score(session: Session, user_id: str) -> int:
    """Sum of total_score over every attempt of the user"""
    return session.scalar(
        select(func.coalesce(func.sum(QuizAttempt.total_score), 0)).where(
            QuizAttempt.user_id == user_id
        )
    )


class AttemptAccumulator:
    """Owns attempt records and keeps the score ledger in step with them"""

    def __init__(
        self,
        session_factory: SessionFactory,
        ledger: ScoreLedger,
        ledger_locks: Optional[AsyncKeyedLock] = None,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self._locks = KeyedLock()
        # Per-user ledger writes; shared with the leaderboard rebuild
        self.ledger_locks = ledger_locks or AsyncKeyedLock()

    async def submit_answer(
        self,
        user_id: str,
        category_id: int,
        question_id: int,
        selected_option: str,
    ) -> SubmissionOutcome:
        """
        Score one answer

        Args:
            user_id: Authenticated identity
            category_id: Category the caller is playing
            question_id: Answered question
            selected_option: Chosen option; unknown options simply score incorrect

        Returns:
            SubmissionOutcome with the (possibly replayed) result. ``ledger_synced``
            is False when the attempt was stored but the ledger push failed.

        Raises:
            ValidationException: malformed identifiers
            NotFoundException: unknown or inactive question
            CategoryMismatchException: question belongs to another category
        """
        validate_user_id(user_id)
        validate_record_id(category_id, "category_id")
        validate_record_id(question_id, "question_id")
        validate_selected_option(selected_option)

        result, replayed, total = await run_in_threadpool(
            self.apply_answer, user_id, category_id, question_id, selected_option
        )

        if replayed:
            logger.info(
                f"Replayed answer for user {user_id} question {question_id}",
                extra={"attempt_id": result.attempt_id},
            )
            return SubmissionOutcome(result=result, replayed=True)

        ledger_synced = await self._push_to_ledger(user_id, total)
        return SubmissionOutcome(result=result, replayed=False, ledger_synced=ledger_synced)

    def apply_answer(
        self,
        user_id: str,
        category_id: int,
        question_id: int,
        selected_option: str,
    ) -> Tuple[SubmissionResult, bool, Optional[int]]:
        """
        Blocking part of submit_answer: merge the answer into the attempt

        Returns:
            (result, replayed, cumulative score across all of the user's
            attempts; None on replay)
        """
        with self._locks.hold((user_id, category_id)):
            try:
                return self._apply_locked(user_id, category_id, question_id, selected_option)
            except SQLAlchemyError as e:
                logger.error(
                    f"Failed to store answer for user {user_id} question {question_id}: {e}",
                    exc_info=True,
                )
                raise DatabaseException("Failed to store answer") from e

    def _apply_locked(
        self,
        user_id: str,
        category_id: int,
        question_id: int,
        selected_option: str,
    ) -> Tuple[SubmissionResult, bool, Optional[int]]:
        session = self.session_factory()
        try:
            question = session.get(Question, question_id)
            if question is None or not question.is_active:
                raise NotFoundException("Question", details={"question_id": question_id})
            if question.category_id != category_id:
                raise CategoryMismatchException(
                    details={"question_id": question_id, "category_id": category_id}
                )

            attempt_id = self._attempt_id_for(session, user_id, category_id)

            existing = self._find_answer(session, attempt_id, question_id)
            if existing is not None:
                return _stored_result(existing), True, None

            is_correct = selected_option == question.correct_option
            points = question.points if is_correct else 0
            total_questions = count_active_questions(session, category_id)
            now = datetime.now(timezone.utc)
            started = session.scalar(select(QuizAttempt.created_at).where(QuizAttempt.id == attempt_id))
            if started.tzinfo is None:
                # SQLite drops the offset
                started = started.replace(tzinfo=timezone.utc)
            elapsed = max(int((now - started).total_seconds()), 0)

            session.execute(
                update(QuizAttempt)
                .where(QuizAttempt.id == attempt_id)
                .values(
                    total_score=QuizAttempt.total_score + points,
                    correct_count=QuizAttempt.correct_count + (1 if is_correct else 0),
                    answered_count=QuizAttempt.answered_count + 1,
                    total_questions=total_questions,
                    time_taken_seconds=elapsed,
                    updated_at=now,
                )
            )
            running_total, answered = session.execute(
                select(QuizAttempt.total_score, QuizAttempt.answered_count).where(
                    QuizAttempt.id == attempt_id
                )
            ).one()

            answer = AttemptAnswer(
                attempt_id=attempt_id,
                question_id=question_id,
                selected_option=selected_option,
                is_correct=is_correct,
                points_awarded=points,
                correct_option=question.correct_option,
                running_total=running_total,
                # Deactivated questions answered earlier can push answered past the live count
                category_complete=answered >= total_questions,
                answered_at=now,
            )
            session.add(answer)
            try:
                session.commit()
            except IntegrityError:
                # Another writer stored this question first; serve its result
                session.rollback()
                winner = self._find_answer(session, attempt_id, question_id)
                if winner is None:
                    raise
                return _stored_result(winner), True, None

            total = cumulative_score(session, user_id)
            logger.info(
                f"Scored answer for user {user_id} question {question_id}: "
                f"{'correct' if is_correct else 'incorrect'} (+{points})",
                extra={"attempt_id": attempt_id, "running_total": running_total},
            )
            return _stored_result(answer), False, total
        finally:
            session.close()

    def _attempt_id_for(self, session: Session, user_id: str, category_id: int) -> int:
        """Locate or lazily create the attempt; creation races resolve on the unique key"""
        attempt_id = self._find_attempt_id(session, user_id, category_id)
        if attempt_id is not None:
            return attempt_id

        attempt = QuizAttempt(
            user_id=user_id,
            category_id=category_id,
            total_score=0,
            correct_count=0,
            answered_count=0,
            total_questions=0,
            created_at=datetime.now(timezone.utc),
        )
        session.add(attempt)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            attempt_id = self._find_attempt_id(session, user_id, category_id)
            if attempt_id is None:
                raise
            return attempt_id
        logger.info(f"Created attempt {attempt.id} for user {user_id} category {category_id}")
        return attempt.id

    @staticmethod
    def _find_attempt_id(session: Session, user_id: str, category_id: int) -> Optional[int]:
        return session.scalar(
            select(QuizAttempt.id).where(
                QuizAttempt.user_id == user_id, QuizAttempt.category_id == category_id
            )
        )

    @staticmethod
    def _find_answer(session: Session, attempt_id: int, question_id: int) -> Optional[AttemptAnswer]:
        return session.scalar(
            select(AttemptAnswer).where(
                AttemptAnswer.attempt_id == attempt_id,
                AttemptAnswer.question_id == question_id,
            )
        )

    def _current_total(self, user_id: str) -> int:
        session = self.session_factory()
        try:
            return cumulative_score(session, user_id)
        finally:
            session.close()

    async def _push_to_ledger(self, user_id: str, total: int) -> bool:
        """
        Upsert the user's cumulative score

        Pushes for one user are serialized and re-read the committed total, so
        a push that resumes late never overwrites a newer score.
        """
        try:
            async with self.ledger_locks.hold(user_id):
                total = await run_in_threadpool(self._current_total, user_id)
                await self.ledger.upsert(user_id, total)
            return True
        except UnavailableException as e:
            logger.error(
                f"Answer stored but leaderboard update failed for user {user_id}: {e.message}",
                extra={"cumulative_score": total},
            )
            return False
        except SQLAlchemyError as e:
            logger.error(
                f"Answer stored but reading the cumulative score failed for user {user_id}: {e}",
                exc_info=True,
            )
            return False
