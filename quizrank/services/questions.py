"""
Question store
Read access to the quiz catalogue plus the invariant-checked writers used by
catalogue tooling and seeding.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from quizrank.core.database import SessionFactory, session_scope
from quizrank.core.exceptions import NotFoundException, ValidationException
from quizrank.models.quiz import Joke, Question, QuizCategory
from quizrank.schemas.quiz import CategoryInfo, QuestionOut, QuestionSetPayload

logger = logging.getLogger(__name__)


def count_active_questions(session: Session, category_id: int) -> int:
    """Live number of active questions in a category"""
    return session.scalar(
        select(func.count(Question.id)).where(
            Question.category_id == category_id,
            Question.is_active.is_(True),
        )
    ) or 0


def validate_question_fields(options: Any, correct_option: Any, points: Any) -> None:
    """Options: at least two unique strings; correct option among them; points >= 0"""
    if not isinstance(options, list) or len(options) < 2:
        raise ValidationException("At least two options are required")
    if not all(isinstance(option, str) and option for option in options):
        raise ValidationException("Options must be non-empty strings")
    if len(set(options)) != len(options):
        raise ValidationException("Options must be unique")
    if correct_option not in options:
        raise ValidationException("Correct option must be one of the options")
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        raise ValidationException("Points must be a non-negative integer")


class QuestionStore:
    """Catalogue of categories and questions"""

    EDITABLE_FIELDS = {"text", "options", "correct_option", "explanation", "points", "is_active"}

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def build_question_set(self, category_id: int) -> Dict[str, Any]:
        """
        Assemble the start-quiz payload for a category

        Only active questions are listed and the correct option is withheld.

        Raises:
            NotFoundException: unknown category
        """
        with session_scope(self.session_factory) as session:
            category = session.get(QuizCategory, category_id)
            if category is None:
                raise NotFoundException("Quiz category", details={"category_id": category_id})

            questions = session.scalars(
                select(Question)
                .where(Question.category_id == category_id, Question.is_active.is_(True))
                .order_by(Question.id)
            ).all()

            payload = QuestionSetPayload(
                category=CategoryInfo(
                    id=category.id,
                    name=category.name,
                    total_time_seconds=category.total_time_seconds,
                    total_questions=len(questions),
                ),
                questions=[
                    QuestionOut(id=q.id, text=q.text, options=list(q.options), points=q.points)
                    for q in questions
                ],
            )

        logger.info(f"Assembled question set for category {category_id} ({len(questions)} questions)")
        return payload.model_dump()

    def create_category(
        self,
        name: str,
        total_time_seconds: Optional[int] = None,
        image_url: Optional[str] = None,
    ) -> QuizCategory:
        if not name or not name.strip():
            raise ValidationException("Category name is required")
        with session_scope(self.session_factory) as session:
            category = QuizCategory(
                name=name.strip(), total_time_seconds=total_time_seconds, image_url=image_url
            )
            session.add(category)
            session.flush()
            session.refresh(category)
            return category

    def create_question(
        self,
        category_id: int,
        text: str,
        options: List[str],
        correct_option: str,
        points: int = 10,
        explanation: Optional[str] = None,
        is_active: bool = True,
    ) -> Question:
        if not text or not text.strip():
            raise ValidationException("Question text is required")
        validate_question_fields(options, correct_option, points)

        with session_scope(self.session_factory) as session:
            if session.get(QuizCategory, category_id) is None:
                raise NotFoundException("Quiz category", details={"category_id": category_id})
            question = Question(
                category_id=category_id,
                text=text.strip(),
                options=list(options),
                correct_option=correct_option,
                points=points,
                explanation=explanation,
                is_active=is_active,
            )
            session.add(question)
            session.flush()
            session.refresh(question)
            return question

    def update_question(self, question_id: int, **changes: Any) -> Question:
        """Edit a question; the merged record must still satisfy the option invariants"""
        unknown = set(changes) - self.EDITABLE_FIELDS
        if unknown:
            raise ValidationException(
                "Unknown question fields", details={"fields": sorted(unknown)}
            )

        with session_scope(self.session_factory) as session:
            question = session.get(Question, question_id)
            if question is None:
                raise NotFoundException("Question", details={"question_id": question_id})

            validate_question_fields(
                changes.get("options", question.options),
                changes.get("correct_option", question.correct_option),
                changes.get("points", question.points),
            )
            for field, value in changes.items():
                setattr(question, field, list(value) if field == "options" else value)
            session.flush()
            session.refresh(question)
            return question

    def create_joke(self, text: str, image_url: str) -> Joke:
        if not text or not image_url:
            raise ValidationException("Joke text and image url are required")
        with session_scope(self.session_factory) as session:
            joke = Joke(text=text, image_url=image_url)
            session.add(joke)
            session.flush()
            session.refresh(joke)
            return joke
