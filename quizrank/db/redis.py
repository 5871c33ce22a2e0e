"""
Redis connection management for QuizRank
Shared by the score ledger and the question-set cache
"""

import asyncio
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError, RedisError

from quizrank.core.config import settings

logger = logging.getLogger(__name__)


class RedisConnection:
    """Redis client holder with bounded connection retries"""

    def __init__(self, url: Optional[str] = None, max_connection_attempts: int = 3):
        self.url = url or settings.get_redis_url()
        self.client: Optional[redis.Redis] = None
        self.is_connected = False
        self._max_connection_attempts = max_connection_attempts

    async def connect(self) -> bool:
        """
        Connect to Redis

        Returns:
            True if connected successfully, False otherwise
        """
        if not settings.REDIS_ENABLED:
            logger.info("Redis is disabled")
            return False

        if self.is_connected:
            return True

        for attempt in range(1, self._max_connection_attempts + 1):
            try:
                self.client = redis.from_url(
                    self.url,
                    max_connections=settings.REDIS_POOL_MAX_CONNECTIONS,
                    decode_responses=True,
                )
                await self.client.ping()
                self.is_connected = True
                logger.info("Connected to Redis successfully")
                return True
            except (RedisError, ConnectionError, OSError) as e:
                logger.warning(
                    f"Failed to connect to Redis (attempt {attempt}/{self._max_connection_attempts}): {e}"
                )
                if attempt < self._max_connection_attempts:
                    await asyncio.sleep(1)

        logger.error("Max Redis connection attempts reached. Running without Redis.")
        self.is_connected = False
        return False

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.client:
            await self.client.aclose()
            self.is_connected = False
            logger.info("Disconnected from Redis")

    async def ping(self) -> bool:
        """Live health check"""
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except (RedisError, ConnectionError, OSError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
