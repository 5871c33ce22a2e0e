"""
Leaderboard views and ledger reconciliation
"""

import asyncio
import logging
from typing import List, Optional

from sqlalchemy import func, select
from starlette.concurrency import run_in_threadpool

from quizrank.core.config import settings
from quizrank.core.database import SessionFactory, session_scope
from quizrank.core.exceptions import UnavailableException, ValidationException
from quizrank.models.quiz import QuizAttempt
from quizrank.schemas.leaderboard import (
    CallerStanding,
    LeaderboardEntry,
    LeaderboardPage,
    RebuildReport,
)
from quizrank.services.ledger import SERVICE_NAME, LedgerEntry, ScoreLedger
from quizrank.utils.locks import AsyncKeyedLock

logger = logging.getLogger(__name__)


def _entries(rows: List[LedgerEntry], first_rank: int) -> List[LeaderboardEntry]:
    return [
        LeaderboardEntry(rank=first_rank + i, position=first_rank + i + 1, user_id=user_id, score=score)
        for i, (user_id, score) in enumerate(rows)
    ]


class LeaderboardService:
    """Read views over the score ledger; they fail closed when it is unreachable"""

    def __init__(
        self,
        ledger: ScoreLedger,
        session_factory: SessionFactory,
        ledger_locks: Optional[AsyncKeyedLock] = None,
    ):
        self.ledger = ledger
        self.session_factory = session_factory
        self.ledger_locks = ledger_locks or AsyncKeyedLock()

    async def _ensure_available(self) -> None:
        if not await self.ledger.is_available():
            raise UnavailableException(SERVICE_NAME)

    async def top(self, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        limit = limit or settings.LEADERBOARD_TOP_SIZE
        limit = max(1, min(limit, settings.LEADERBOARD_MAX_PAGE_SIZE))
        await self._ensure_available()
        return _entries(await self.ledger.range_by_rank_descending(0, limit - 1), 0)

    async def get_leaderboard_page(
        self,
        page: int = 1,
        page_size: Optional[int] = None,
        caller_id: Optional[str] = None,
    ) -> LeaderboardPage:
        """
        One page of the global leaderboard plus the podium and the caller's standing

        Args:
            page: 1-based page number (values below 1 are treated as 1)
            page_size: Entries per page, capped at LEADERBOARD_MAX_PAGE_SIZE
            caller_id: Identity whose standing is reported alongside the page

        Raises:
            UnavailableException: the ledger backend is unreachable
        """
        if page is None or page < 1:
            page = 1
        page_size = page_size or settings.LEADERBOARD_DEFAULT_PAGE_SIZE
        if page_size < 1:
            raise ValidationException("page_size must be positive")
        page_size = min(page_size, settings.LEADERBOARD_MAX_PAGE_SIZE)

        await self._ensure_available()

        start = (page - 1) * page_size
        rows = await self.ledger.range_by_rank_descending(start, start + page_size - 1)
        podium = await self.ledger.range_by_rank_descending(0, 2)

        caller = None
        if caller_id:
            rank = await self.ledger.rank(caller_id)
            score = await self.ledger.score_of(caller_id)
            caller = CallerStanding(
                user_id=caller_id,
                rank=rank,
                position=None if rank is None else rank + 1,
                score=score or 0,
            )

        return LeaderboardPage(
            page=page,
            page_size=page_size,
            total_entries=await self.ledger.size(),
            top3=_entries(podium, 0),
            entries=_entries(rows, start),
            caller=caller,
        )

    async def rebuild_from_attempts(self) -> RebuildReport:
        """
        Recompute every user's cumulative score from attempts and re-upsert it.
        Ledger entries for users without attempts are removed.

        Each user is reconciled under the same per-user lock the answer path
        pushes under, from a total read inside that lock, so answers committed
        while the sweep runs are never rolled back or dropped.
        """
        await self._ensure_available()
        users = set(await run_in_threadpool(self._scored_users))

        size = await self.ledger.size()
        if size:
            users.update(
                user_id for user_id, _ in await self.ledger.range_by_rank_descending(0, size - 1)
            )

        synced = removed = 0
        for user_id in sorted(users):
            if await self.sync_user(user_id):
                synced += 1
            else:
                removed += 1

        logger.info(
            "Leaderboard rebuilt from attempts",
            extra={"users": synced, "removed": removed},
        )
        return RebuildReport(users=synced, removed=removed)

    async def sync_user(self, user_id: str) -> bool:
        """Set the ledger entry to the committed total; False if the user has no attempts"""
        async with self.ledger_locks.hold(user_id):
            total = await run_in_threadpool(self._committed_total, user_id)
            if total is None:
                await self.ledger.remove(user_id)
                return False
            await self.ledger.upsert(user_id, total)
            return True

    def _scored_users(self) -> List[str]:
        with session_scope(self.session_factory) as session:
            return list(session.scalars(select(QuizAttempt.user_id).distinct()))

    def _committed_total(self, user_id: str) -> Optional[int]:
        with session_scope(self.session_factory) as session:
            attempts, total = session.execute(
                select(
                    func.count(QuizAttempt.id),
                    func.coalesce(func.sum(QuizAttempt.total_score), 0),
                ).where(QuizAttempt.user_id == user_id)
            ).one()
            return int(total) if attempts else None

    async def reconcile_forever(self, interval: int) -> None:
        """Periodic reconciliation sweep; runs until cancelled"""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.rebuild_from_attempts()
            except UnavailableException as e:
                logger.warning(f"Leaderboard reconciliation skipped: {e.message}")
