"""
Service wiring
Builds the core services once per application and exposes them on app.state.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from quizrank.core.cache import CacheStore, MemoryCacheStore, QuestionSetCache, RedisCacheStore
from quizrank.core.config import settings
from quizrank.core.database import SessionFactory
from quizrank.db.redis import RedisConnection
from quizrank.services.access import AccessGate, OpenAccessGate
from quizrank.services.attempts import AttemptAccumulator
from quizrank.services.bonus import JokeBonusProvider
from quizrank.services.leaderboard import LeaderboardService
from quizrank.services.ledger import MemoryScoreLedger, RedisScoreLedger, ScoreLedger
from quizrank.services.questions import QuestionStore
from quizrank.services.quizzes import QuizService
from quizrank.services.stats import StatsAggregator
from quizrank.utils.locks import AsyncKeyedLock

logger = logging.getLogger(__name__)


@dataclass
class Services:
    session_factory: SessionFactory
    ledger: ScoreLedger
    question_store: QuestionStore
    question_cache: QuestionSetCache
    accumulator: AttemptAccumulator
    quizzes: QuizService
    stats: StatsAggregator
    leaderboard: LeaderboardService
    access_gate: AccessGate
    redis: Optional[RedisConnection] = None


def build_services(
    session_factory: SessionFactory,
    redis: Optional[RedisConnection] = None,
    ledger: Optional[ScoreLedger] = None,
    cache_store: Optional[CacheStore] = None,
    access_gate: Optional[AccessGate] = None,
) -> Services:
    """
    Wire the core services

    Redis-backed ledger and cache are used when a connected RedisConnection is
    given and LEADERBOARD_BACKEND is "redis"; otherwise the in-process
    backends are used. Explicit ``ledger``/``cache_store`` arguments win.
    """
    use_redis = redis is not None and redis.is_connected
    if ledger is None:
        if use_redis and settings.LEADERBOARD_BACKEND == "redis":
            ledger = RedisScoreLedger(redis)
        else:
            ledger = MemoryScoreLedger()
    if cache_store is None:
        cache_store = RedisCacheStore(redis) if use_redis else MemoryCacheStore()

    logger.info(
        f"Services wired: ledger={type(ledger).__name__} cache={type(cache_store).__name__}"
    )

    store = QuestionStore(session_factory)
    cache = QuestionSetCache(cache_store)
    ledger_locks = AsyncKeyedLock()
    accumulator = AttemptAccumulator(session_factory, ledger, ledger_locks)
    return Services(
        session_factory=session_factory,
        ledger=ledger,
        question_store=store,
        question_cache=cache,
        accumulator=accumulator,
        quizzes=QuizService(store, cache, accumulator, JokeBonusProvider(session_factory)),
        stats=StatsAggregator(session_factory, ledger),
        leaderboard=LeaderboardService(ledger, session_factory, ledger_locks),
        access_gate=access_gate or OpenAccessGate(),
        redis=redis,
    )
