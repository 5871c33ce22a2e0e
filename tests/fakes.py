"""Test doubles for the ledger and Redis"""

from fakeredis import aioredis as fake_aioredis
from redis.exceptions import ConnectionError

from quizrank.core.exceptions import UnavailableException
from quizrank.services.ledger import MemoryScoreLedger


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class UnreachableLedger(MemoryScoreLedger):
    """Ledger whose backend is down"""

    async def is_available(self) -> bool:
        return False

    async def upsert(self, user_id, score):
        raise UnavailableException("Leaderboard")

    async def rank(self, user_id):
        raise UnavailableException("Leaderboard")

    async def score_of(self, user_id):
        raise UnavailableException("Leaderboard")


class BrokenRedisClient:
    """Every command fails as if the server went away"""

    def __getattr__(self, name):
        async def command(*args, **kwargs):
            raise ConnectionError("connection refused")

        return command


class StubConnection:
    def __init__(self, client=None, is_connected=True):
        self.client = client
        self.is_connected = is_connected

    async def ping(self) -> bool:
        return False


class FakeRedisConnection:
    """RedisConnection stand-in over an in-process fakeredis server"""

    def __init__(self):
        self.client = fake_aioredis.FakeRedis(decode_responses=True)
        self.is_connected = True

    async def ping(self) -> bool:
        return bool(await self.client.ping())


class InterleavingLedger(MemoryScoreLedger):
    """Runs ``on_size`` once, the next time size() is awaited"""

    def __init__(self, seed=None):
        super().__init__(seed=seed)
        self.on_size = None

    async def size(self):
        if self.on_size is not None:
            hook, self.on_size = self.on_size, None
            await hook()
        return await super().size()
