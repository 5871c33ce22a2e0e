"""
Question-set cache
Short-lived cache of assembled "start quiz" payloads keyed by category.
The cache is advisory: any store failure falls through to the builder.
"""

import inspect
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

from redis.exceptions import ConnectionError, RedisError

from quizrank.core.config import settings
from quizrank.core.exceptions import UnavailableException
from quizrank.db.redis import RedisConnection

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]
Builder = Callable[[], Union[Payload, Awaitable[Payload]]]


class CacheStore(ABC):
    """Key/value store holding serialized payloads with a time-to-live"""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class MemoryCacheStore(CacheStore):
    """Process-local store; entries are checked against the clock on read"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class RedisCacheStore(CacheStore):
    """Store backed by Redis SETEX; expiry is enforced by Redis"""

    def __init__(self, connection: RedisConnection):
        self.connection = connection

    def _client(self):
        if not self.connection.is_connected or self.connection.client is None:
            raise UnavailableException("Cache")
        return self.connection.client

    async def get(self, key: str) -> Optional[str]:
        client = self._client()
        try:
            return await client.get(key)
        except (RedisError, ConnectionError) as e:
            raise UnavailableException("Cache", details={"operation": "get"}) from e

    async def set(self, key: str, value: str, ttl: int) -> None:
        client = self._client()
        try:
            await client.setex(key, ttl, value)
        except (RedisError, ConnectionError) as e:
            raise UnavailableException("Cache", details={"operation": "set"}) from e

    async def delete(self, key: str) -> None:
        client = self._client()
        try:
            await client.delete(key)
        except (RedisError, ConnectionError) as e:
            raise UnavailableException("Cache", details={"operation": "delete"}) from e


class QuestionSetCache:
    """Time-bounded cache of question-set payloads per category"""

    def __init__(
        self,
        store: CacheStore,
        ttl: Optional[int] = None,
        prefix: Optional[str] = None,
    ):
        self.store = store
        self.ttl = settings.QUESTION_SET_CACHE_TTL if ttl is None else ttl
        if self.ttl < 0:
            raise ValueError("ttl must be non-negative")
        self.prefix = prefix or settings.QUESTION_SET_CACHE_PREFIX

    def key_for(self, category_id: int) -> str:
        return f"{self.prefix}:{category_id}"

    async def get_or_build(self, category_id: int, builder: Builder) -> Payload:
        """
        Return the cached payload for ``category_id`` or build and store it

        Args:
            category_id: Quiz category
            builder: Zero-argument callable (sync or async) assembling the payload

        Returns:
            The payload, decoded from its serialized form on both paths
        """
        key = self.key_for(category_id)

        cached = await self._read(key)
        if cached is not None:
            logger.debug(f"Cache hit for key: {key}")
            return cached

        payload = builder()
        if inspect.isawaitable(payload):
            payload = await payload

        serialized = json.dumps(payload, sort_keys=True, default=str)
        if not self.ttl:
            # ttl=0 disables caching
            return json.loads(serialized)
        try:
            await self.store.set(key, serialized, self.ttl)
            logger.debug(f"Cached question set for key: {key}")
        except UnavailableException as e:
            logger.warning(f"Question-set cache write skipped for {key}: {e.message}")

        return json.loads(serialized)

    async def invalidate(self, category_id: int) -> None:
        key = self.key_for(category_id)
        try:
            await self.store.delete(key)
        except UnavailableException as e:
            logger.warning(f"Question-set cache invalidation skipped for {key}: {e.message}")

    async def _read(self, key: str) -> Optional[Payload]:
        try:
            cached = await self.store.get(key)
        except UnavailableException as e:
            logger.warning(f"Question-set cache read skipped for {key}: {e.message}")
            return None
        if cached is None:
            return None
        try:
            return json.loads(cached)
        except json.JSONDecodeError:
            logger.warning(f"Discarding undecodable cache entry for {key}")
            return None
