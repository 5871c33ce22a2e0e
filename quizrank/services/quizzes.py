"""Quiz play service: start a category, submit answers, edit the catalogue"""

import logging
from typing import Any, Dict

from starlette.concurrency import run_in_threadpool

from quizrank.core.cache import QuestionSetCache
from quizrank.models.quiz import Question
from quizrank.schemas.quiz import SubmissionOutcome
from quizrank.services.attempts import AttemptAccumulator
from quizrank.services.bonus import JokeBonusProvider
from quizrank.services.questions import QuestionStore
from quizrank.utils.validators import validate_record_id

logger = logging.getLogger(__name__)


class QuizService:
    def __init__(
        self,
        store: QuestionStore,
        cache: QuestionSetCache,
        accumulator: AttemptAccumulator,
        bonus: JokeBonusProvider,
    ):
        self.store = store
        self.cache = cache
        self.accumulator = accumulator
        self.bonus = bonus

    async def start_quiz(self, category_id: int) -> Dict[str, Any]:
        """Question set for a category, served through the question-set cache"""
        validate_record_id(category_id, "category_id")
        return await self.cache.get_or_build(
            category_id,
            lambda: run_in_threadpool(self.store.build_question_set, category_id),
        )

    async def submit_answer(
        self,
        user_id: str,
        category_id: int,
        question_id: int,
        selected_option: str,
    ) -> SubmissionOutcome:
        """Score an answer; attach the bonus when this answer completes the category"""
        outcome = await self.accumulator.submit_answer(
            user_id, category_id, question_id, selected_option
        )
        if outcome.result.is_category_complete and not outcome.replayed:
            bonus = await run_in_threadpool(self.bonus.random_bonus)
            outcome = outcome.model_copy(update={"bonus": bonus})
            logger.info(f"User {user_id} completed category {category_id}")
        return outcome

    async def create_question(self, category_id: int, **fields: Any) -> Question:
        """Add a question and drop the category's cached question set"""
        question = await run_in_threadpool(self.store.create_question, category_id, **fields)
        await self.cache.invalidate(question.category_id)
        return question

    async def update_question(self, question_id: int, **changes: Any) -> Question:
        """Edit or deactivate a question; players see the change on their next start"""
        question = await run_in_threadpool(self.store.update_question, question_id, **changes)
        await self.cache.invalidate(question.category_id)
        logger.info(
            f"Question {question_id} updated",
            extra={"category_id": question.category_id, "fields": sorted(changes)},
        )
        return question
