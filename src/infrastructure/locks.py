"""
Redis-based distributed lock.

Used by the reconciliation sweeper so that only one API process walks
the open trips per interval.  Per-trip correctness does not depend on
it (every sweep write is a conditional write); the lock only avoids
duplicate work and noisy conflicts.

Acquire is ``SET NX EX``; release is an atomic check-and-delete in Lua
so a worker whose lock already expired never deletes a successor's.
"""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis

from src.config import settings

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

_pool: aioredis.ConnectionPool | None = None


def get_redis() -> aioredis.Redis:
    """Redis client backed by a lazily created shared connection pool."""
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            settings.redis_url, decode_responses=True
        )
    return aioredis.Redis(connection_pool=_pool)


class DistributedLock:
    def __init__(self, client: aioredis.Redis, name: str, ttl_seconds: int = 30):
        self.redis = client
        self.key = f"lock:{name}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def release(self) -> bool:
        """Release only if we still own the lock. Returns True if deleted."""
        return bool(await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token))

    @asynccontextmanager
    async def held(self) -> AsyncIterator[bool]:
        """Yield whether the lock was obtained; release on exit if it was."""
        acquired = await self.acquire()
        try:
            yield acquired
        finally:
            if acquired:
                await self.release()
