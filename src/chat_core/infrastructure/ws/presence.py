"""Online/offline transitions derived from registry occupancy."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from chat_core.application.ports.clock import Clock, SystemClock
from chat_core.application.uow import UoWFactory
from chat_core.domain.entities.presence import Presence
from chat_core.domain.events.presence_changed import PresenceChanged
from chat_core.infrastructure.ws.registry import SessionRegistry

logger = logging.getLogger(__name__)


class _KeyedLock:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._waiters: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, key: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class PresenceTracker:
    """Turns connection counts into at most one online/offline event per transition.

    Each call re-checks the registry under a per-user lock, so calls that
    arrive out of order (a late ``mark_online`` after the last disconnect)
    become no-ops instead of announcing a stale state.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        uow_factory: UoWFactory,
        clock: Clock | None = None,
    ) -> None:
        self._registry = registry
        self._uow_factory = uow_factory
        self._clock = clock or SystemClock()
        self._online: set[int] = set()
        self._locks = _KeyedLock()

    def is_announced_online(self, user_id: int) -> bool:
        return user_id in self._online

    async def mark_online(self, user_id: int) -> PresenceChanged | None:
        async with self._locks.hold(user_id):
            if user_id in self._online or not self._registry.is_online(user_id):
                return None
            await self._persist(Presence(user_id=user_id, is_online=True, last_seen_at=None))
            self._online.add(user_id)
        logger.info("User %s is online", user_id)
        return PresenceChanged(user_id=user_id, is_online=True, last_seen_at=None)

    async def mark_offline(self, user_id: int) -> PresenceChanged | None:
        async with self._locks.hold(user_id):
            if user_id not in self._online or self._registry.is_online(user_id):
                return None
            now = self._clock.now()
            await self._persist(Presence(user_id=user_id, is_online=False, last_seen_at=now))
            self._online.discard(user_id)
        logger.info("User %s is offline", user_id)
        return PresenceChanged(user_id=user_id, is_online=False, last_seen_at=now)

    async def reset(self) -> int:
        """Mark every persisted presence offline; live state does not survive a restart."""
        self._online.clear()
        async with self._uow_factory() as uow:
            changed = await uow.presence_w.mark_all_offline(self._clock.now())
            await uow.commit()
        if changed:
            logger.info("Reset %d stale online presence record(s)", changed)
        return changed

    async def _persist(self, presence: Presence) -> None:
        async with self._uow_factory() as uow:
            await uow.presence_w.upsert(presence)
            await uow.commit()
