"""Redis sorted-set sliding-window rate limiter."""
from __future__ import annotations

import math
import time
import uuid

import redis.asyncio as aioredis

from chat_core.application.exceptions import RateLimitedError


class RedisRateLimiter:
    """One ZSET per key scored by timestamp; the key expires with its window.

    The attempt is added and counted in the same MULTI, so concurrent
    attempts from one key cannot all slip under the limit. A rejected
    attempt is removed again and does not extend the block.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        max_attempts: int,
        window_seconds: int,
        *,
        prefix: str = "chat:ratelimit:",
    ) -> None:
        self._redis = redis
        self._max_attempts = max_attempts
        self._window = window_seconds
        self._prefix = prefix

    async def hit(self, key: str) -> None:
        redis_key = f"{self._prefix}{key}"
        now = time.time()
        member = f"{now}:{uuid.uuid4().hex[:8]}"
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(redis_key, 0, now - self._window)
            pipe.zadd(redis_key, {member: now})
            pipe.zcard(redis_key)
            pipe.zrange(redis_key, 0, 0, withscores=True)
            pipe.expire(redis_key, self._window)
            _, _, count, oldest, _ = await pipe.execute()

        if count > self._max_attempts:
            await self._redis.zrem(redis_key, member)
            first = oldest[0][1] if oldest else now
            retry_after = math.ceil(first + self._window - now)
            raise RateLimitedError(retry_after=max(retry_after, 1))
