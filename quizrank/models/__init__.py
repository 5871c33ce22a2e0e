"""
QuizRank Models Package
"""

from quizrank.models.quiz import (
    QuizCategory, Question, QuizAttempt, AttemptAnswer, Joke
)

__all__ = [
    "QuizCategory", "Question", "QuizAttempt", "AttemptAnswer", "Joke"
]
