"""Bounded in-process sliding-window rate limiter."""
from __future__ import annotations

import math
from collections import OrderedDict, deque

from chat_core.application.exceptions import RateLimitedError
from chat_core.application.ports.clock import Clock, SystemClock


class InMemoryRateLimiter:
    """Sliding window per key with a hard cap on tracked keys.

    Keys are ordered by their latest accepted attempt, so expired keys sit at
    the front and the sweep stops at the first live one. When the cap is
    still exceeded the oldest key is evicted, so memory stays bounded no
    matter how many distinct callers show up.
    """

    def __init__(
        self,
        max_attempts: int,
        window_seconds: float,
        *,
        max_keys: int = 10_000,
        clock: Clock | None = None,
    ) -> None:
        self._max_attempts = max_attempts
        self._window = window_seconds
        self._max_keys = max_keys
        self._clock = clock or SystemClock()
        self._hits: OrderedDict[str, deque[float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._hits)

    async def hit(self, key: str) -> None:
        now = self._clock.monotonic()
        cutoff = now - self._window
        self._sweep(cutoff)

        attempts = self._hits.get(key)
        if attempts is None:
            attempts = deque()
            self._hits[key] = attempts
        while attempts and attempts[0] <= cutoff:
            attempts.popleft()

        if len(attempts) >= self._max_attempts:
            retry_after = math.ceil(attempts[0] + self._window - now)
            raise RateLimitedError(retry_after=max(retry_after, 1))

        attempts.append(now)
        self._hits.move_to_end(key)
        while len(self._hits) > self._max_keys:
            self._hits.popitem(last=False)

    def _sweep(self, cutoff: float) -> None:
        while self._hits:
            key, attempts = next(iter(self._hits.items()))
            if attempts and attempts[-1] > cutoff:
                return
            del self._hits[key]
