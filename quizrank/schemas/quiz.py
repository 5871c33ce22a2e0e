"""
Quiz play schemas for QuizRank
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CategoryInfo(BaseModel):
    """Category header of a question set"""
    id: int
    name: str
    total_time_seconds: Optional[int] = None
    total_questions: int


class QuestionOut(BaseModel):
    """Question as served to players; the correct option is withheld"""
    id: int
    text: str
    options: List[str]
    points: int


class QuestionSetPayload(BaseModel):
    """Start-quiz payload"""
    category: CategoryInfo
    questions: List[QuestionOut]


class SubmitAnswerRequest(BaseModel):
    """Single answer submission"""
    category_id: int = Field(..., ge=1)
    question_id: int = Field(..., ge=1)
    selected_option: str = Field(..., min_length=1, max_length=1000)


class SubmissionResult(BaseModel):
    """Stored outcome of one answer; replays return it unchanged"""
    is_correct: bool
    correct_option: str
    attempt_id: int
    running_total: int
    is_category_complete: bool


class BonusPayload(BaseModel):
    """Reward shown once a category is completed"""
    joke: str
    image_url: str


class SubmissionOutcome(BaseModel):
    """Result of submit_answer plus delivery metadata"""
    result: SubmissionResult
    replayed: bool = False
    ledger_synced: bool = True
    bonus: Optional[BonusPayload] = None


class SubmitAnswerResponse(SubmissionResult):
    """Response body for the submit endpoint"""
    message: str
    ledger_synced: bool
    bonus: Optional[BonusPayload] = None


class QuestionCreate(BaseModel):
    """Catalogue tooling: new question"""
    category_id: int = Field(..., ge=1)
    text: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_option: str
    points: int = Field(10, ge=0)
    explanation: Optional[str] = None
    is_active: bool = True


class QuestionUpdate(BaseModel):
    text: Optional[str] = Field(None, min_length=1)
    options: Optional[List[str]] = Field(None, min_length=2)
    correct_option: Optional[str] = None
    points: Optional[int] = Field(None, ge=0)
    explanation: Optional[str] = None
    is_active: Optional[bool] = None


class QuestionAdminOut(BaseModel):
    """Question including its answer, for catalogue tooling only"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    category_id: int
    text: str
    options: List[str]
    correct_option: str
    points: int
    explanation: Optional[str] = None
    is_active: bool
