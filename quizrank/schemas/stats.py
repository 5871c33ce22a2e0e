"""
Stats schemas
Read-side projections over quiz attempts
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class LeaderboardStanding(BaseModel):
    """Ledger view embedded in stats; all None when the ledger is unreachable"""
    score: Optional[int] = None
    rank: Optional[int] = None
    position: Optional[int] = None


class UserOverview(BaseModel):
    quizzes_played: int
    total_score: int
    best_score: int
    average_score: float
    total_correct: int
    total_questions: int
    last_played_at: Optional[datetime] = None
    leaderboard: LeaderboardStanding


class Performance(BaseModel):
    quizzes_played: int
    total_score: int
    total_correct: int


class CategoryRef(BaseModel):
    id: int
    name: str
    image_url: Optional[str] = None
    total_time_seconds: Optional[int] = None


class CategoryStats(BaseModel):
    category: CategoryRef
    quizzes_played: int
    total_score: int
    best_score: int
    average_score: float
    total_correct: int
    total_questions: int
    total_incorrect: int
    accuracy_percent: int
    last_played_at: Optional[datetime] = None


class AttemptSummary(BaseModel):
    attempt_id: int
    category: CategoryRef
    total_questions: int
    answered_questions: int
    correct_answers: int
    incorrect_answers: int
    total_score: int
    accuracy_percent: int
    is_complete: bool
    time_taken_seconds: Optional[int] = None
    time_taken_formatted: Optional[str] = None
    created_at: datetime


class AnswerOut(BaseModel):
    question_id: int
    question_text: str
    options: List[str]
    selected_option: str
    correct_option: str
    is_correct: bool
    points_awarded: int
    answered_at: datetime


class AttemptDetail(AttemptSummary):
    answers: List[AnswerOut]


class CategoryProgress(BaseModel):
    total_categories_available: int
    completed_categories: int
    pending_categories: int
    completed_percent: int
    pending_percent: int


class LeaderboardSummary(BaseModel):
    quizzes_played: int
    points: Optional[int] = None
    position: Optional[int] = None
    message: str
    accuracy_percent: int
    category_progress: CategoryProgress
