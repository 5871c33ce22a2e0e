"""
Score ledger: global ranking of cumulative user scores

Ordering is (score desc, user_id asc) in every backend, so ranks are
deterministic for tied scores. Ranks are 0-based.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, NamedTuple, Optional

from redis.exceptions import ConnectionError, RedisError

from quizrank.core.config import settings
from quizrank.core.exceptions import UnavailableException, ValidationException
from quizrank.db.redis import RedisConnection
from quizrank.utils.skiplist import IndexableSkipList

logger = logging.getLogger(__name__)

SERVICE_NAME = "Leaderboard"


class LedgerEntry(NamedTuple):
    user_id: str
    score: int


def _check_score(score: int) -> int:
    if isinstance(score, bool) or not isinstance(score, int) or score < 0:
        raise ValidationException("Score must be a non-negative integer", details={"score": score})
    return score


class ScoreLedger(ABC):
    """Ranked index of cumulative scores (a derived view of quiz attempts)"""

    @abstractmethod
    async def is_available(self) -> bool:
        """Whether the backend can currently serve reads and writes"""

    @abstractmethod
    async def upsert(self, user_id: str, score: int) -> None:
        """Set the absolute score of ``user_id``"""

    @abstractmethod
    async def rank(self, user_id: str) -> Optional[int]:
        """0-based descending rank, None if the user has no entry"""

    @abstractmethod
    async def score_of(self, user_id: str) -> Optional[int]:
        ...

    @abstractmethod
    async def range_by_rank_descending(self, start: int, stop: int) -> List[LedgerEntry]:
        """Entries ranked ``start``..``stop`` inclusive, capped to the ledger size"""

    @abstractmethod
    async def size(self) -> int:
        ...

    @abstractmethod
    async def remove(self, user_id: str) -> bool:
        ...

    @abstractmethod
    async def clear(self) -> None:
        ...


class MemoryScoreLedger(ScoreLedger):
    """In-process ledger backed by an indexable skip list"""

    def __init__(self, seed: Optional[int] = None):
        self._lock = threading.Lock()
        self._scores: Dict[str, int] = {}
        # Keys are (-score, user_id) so ascending order is the leaderboard order
        self._order = IndexableSkipList(seed=seed)

    async def is_available(self) -> bool:
        return True

    async def upsert(self, user_id: str, score: int) -> None:
        _check_score(score)
        with self._lock:
            previous = self._scores.get(user_id)
            if previous == score:
                return
            if previous is not None:
                self._order.remove((-previous, user_id))
            self._order.insert((-score, user_id))
            self._scores[user_id] = score

    async def rank(self, user_id: str) -> Optional[int]:
        with self._lock:
            score = self._scores.get(user_id)
            if score is None:
                return None
            return self._order.index((-score, user_id))

    async def score_of(self, user_id: str) -> Optional[int]:
        with self._lock:
            return self._scores.get(user_id)

    async def range_by_rank_descending(self, start: int, stop: int) -> List[LedgerEntry]:
        if start < 0 or stop < 0:
            raise ValidationException("Rank range must be non-negative")
        with self._lock:
            keys = self._order.slice(start, stop)
        return [LedgerEntry(user_id, -neg_score) for neg_score, user_id in keys]

    async def size(self) -> int:
        with self._lock:
            return len(self._scores)

    async def remove(self, user_id: str) -> bool:
        with self._lock:
            score = self._scores.pop(user_id, None)
            if score is None:
                return False
            self._order.remove((-score, user_id))
            return True

    async def clear(self) -> None:
        with self._lock:
            self._scores.clear()
            self._order.clear()


class RedisScoreLedger(ScoreLedger):
    """
    Ledger stored in a Redis sorted set.

    Scores are stored negated: Redis orders equal scores by member in
    ascending byte order, so ZRANK/ZRANGE over negated scores give
    (score desc, user_id asc) without a secondary index.
    """

    def __init__(self, connection: RedisConnection, key: Optional[str] = None):
        self.connection = connection
        self.key = key or settings.LEADERBOARD_KEY

    async def is_available(self) -> bool:
        if not self.connection.is_connected:
            return False
        return await self.connection.ping()

    def _client(self):
        if not self.connection.is_connected or self.connection.client is None:
            raise UnavailableException(SERVICE_NAME)
        return self.connection.client

    async def upsert(self, user_id: str, score: int) -> None:
        _check_score(score)
        client = self._client()
        try:
            await client.zadd(self.key, {user_id: -score})
        except (RedisError, ConnectionError) as e:
            logger.error(f"Redis ZADD failed for {user_id}: {e}")
            raise UnavailableException(SERVICE_NAME, details={"operation": "upsert"}) from e

    async def rank(self, user_id: str) -> Optional[int]:
        client = self._client()
        try:
            return await client.zrank(self.key, user_id)
        except (RedisError, ConnectionError) as e:
            logger.error(f"Redis ZRANK failed for {user_id}: {e}")
            raise UnavailableException(SERVICE_NAME, details={"operation": "rank"}) from e

    async def score_of(self, user_id: str) -> Optional[int]:
        client = self._client()
        try:
            score = await client.zscore(self.key, user_id)
        except (RedisError, ConnectionError) as e:
            logger.error(f"Redis ZSCORE failed for {user_id}: {e}")
            raise UnavailableException(SERVICE_NAME, details={"operation": "score_of"}) from e
        return None if score is None else int(-score)

    async def range_by_rank_descending(self, start: int, stop: int) -> List[LedgerEntry]:
        if start < 0 or stop < 0:
            raise ValidationException("Rank range must be non-negative")
        if stop < start:
            return []
        client = self._client()
        try:
            rows = await client.zrange(self.key, start, stop, withscores=True)
        except (RedisError, ConnectionError) as e:
            logger.error(f"Redis ZRANGE failed for {start}..{stop}: {e}")
            raise UnavailableException(SERVICE_NAME, details={"operation": "range"}) from e
        return [LedgerEntry(member, int(-score)) for member, score in rows]

    async def size(self) -> int:
        client = self._client()
        try:
            return await client.zcard(self.key)
        except (RedisError, ConnectionError) as e:
            raise UnavailableException(SERVICE_NAME, details={"operation": "size"}) from e

    async def remove(self, user_id: str) -> bool:
        client = self._client()
        try:
            return bool(await client.zrem(self.key, user_id))
        except (RedisError, ConnectionError) as e:
            raise UnavailableException(SERVICE_NAME, details={"operation": "remove"}) from e

    async def clear(self) -> None:
        client = self._client()
        try:
            await client.delete(self.key)
        except (RedisError, ConnectionError) as e:
            raise UnavailableException(SERVICE_NAME, details={"operation": "clear"}) from e
