"""QuizRank - quiz scoring and live leaderboard backend"""

__version__ = "1.0.0"
