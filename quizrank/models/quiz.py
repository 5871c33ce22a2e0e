"""
Quiz models for QuizRank
"""

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from quizrank.core.database import Base


class QuizCategory(Base):
    """Quiz category (managed by the catalogue admin, read-only here)"""
    __tablename__ = "quiz_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    total_time_seconds = Column(Integer, nullable=True)
    image_url = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    questions = relationship("Question", back_populates="category")


class Question(Base):
    """Question record; correct_option must be one of options"""
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("quiz_categories.id"), nullable=False, index=True)

    text = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)
    correct_option = Column(String, nullable=False)
    explanation = Column(Text, nullable=True)
    points = Column(Integer, nullable=False, default=10)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    category = relationship("QuizCategory", back_populates="questions")


class QuizAttempt(Base):
    """Accumulated answers of one user in one category"""
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_attempt_user_category"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("quiz_categories.id"), nullable=False)

    total_score = Column(Integer, nullable=False, default=0)
    correct_count = Column(Integer, nullable=False, default=0)
    answered_count = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    time_taken_seconds = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    category = relationship("QuizCategory")
    answers = relationship(
        "AttemptAnswer",
        back_populates="attempt",
        order_by="AttemptAnswer.id",
        cascade="all, delete-orphan",
    )


class AttemptAnswer(Base):
    """One scored answer; also stores the result returned on replay"""
    __tablename__ = "attempt_answers"
    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),
    )

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(Integer, ForeignKey("quiz_attempts.id"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False)

    selected_option = Column(String, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    points_awarded = Column(Integer, nullable=False, default=0)

    # Result snapshot at the time of scoring
    correct_option = Column(String, nullable=False)
    running_total = Column(Integer, nullable=False)
    category_complete = Column(Boolean, nullable=False, default=False)

    answered_at = Column(DateTime(timezone=True), nullable=False)

    attempt = relationship("QuizAttempt", back_populates="answers")
    question = relationship("Question")


class Joke(Base):
    """Bonus content shown when a category is completed"""
    __tablename__ = "jokes"

    id = Column(Integer, primary_key=True, index=True)
    text = Column(Text, nullable=False)
    image_url = Column(String, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
