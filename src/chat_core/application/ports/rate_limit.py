from __future__ import annotations

from typing import Protocol


class RateLimiter(Protocol):
    async def hit(self, key: str) -> None:
        """Record an attempt for ``key``; raise ``RateLimitedError`` past the limit."""
        ...
