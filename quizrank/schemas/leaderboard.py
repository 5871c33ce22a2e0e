"""Leaderboard schemas"""

from typing import List, Optional

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    rank: int  # 0-based
    position: int  # rank + 1, for display
    user_id: str
    score: int


class CallerStanding(BaseModel):
    user_id: str
    rank: Optional[int] = None
    position: Optional[int] = None
    score: int = 0


class LeaderboardPage(BaseModel):
    page: int
    page_size: int
    total_entries: int
    top3: List[LeaderboardEntry]
    entries: List[LeaderboardEntry]
    caller: Optional[CallerStanding] = None


class RebuildReport(BaseModel):
    users: int
    removed: int
