"""In-process registry of live connections per user."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from chat_core.infrastructure.ws.connection import Connection

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Unregistered:
    user_id: int
    remaining: int

    @property
    def went_offline(self) -> bool:
        return self.remaining == 0


class SessionRegistry:
    """Maps user ids to their live connections.

    Mutations are serialized; reads return snapshots, so a fan-out in
    progress never observes a half-applied register/unregister.
    """

    def __init__(self) -> None:
        self._by_user: dict[int, set[Connection]] = {}
        self._owner: dict[Connection, int] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: int, conn: Connection) -> int:
        """Add ``conn`` under ``user_id``; returns the user's connection count."""
        async with self._lock:
            owner = self._owner.get(conn)
            if owner is not None and owner != user_id:
                raise ValueError(f"{conn!r} is already registered for user {owner}")
            handles = self._by_user.setdefault(user_id, set())
            handles.add(conn)
            self._owner[conn] = user_id
            count = len(handles)
        logger.debug("Registered %r (user %s has %d)", conn, user_id, count)
        return count

    async def unregister(self, conn: Connection) -> Unregistered | None:
        """Remove ``conn``; returns None if it was never registered."""
        async with self._lock:
            user_id = self._owner.pop(conn, None)
            if user_id is None:
                return None
            handles = self._by_user.get(user_id, set())
            handles.discard(conn)
            if not handles:
                self._by_user.pop(user_id, None)
            remaining = len(handles)
        logger.debug("Unregistered %r (user %s has %d)", conn, user_id, remaining)
        return Unregistered(user_id=user_id, remaining=remaining)

    def handles_for(self, user_id: int) -> frozenset[Connection]:
        return frozenset(self._by_user.get(user_id, ()))

    def is_online(self, user_id: int) -> bool:
        return bool(self._by_user.get(user_id))

    def online_user_ids(self) -> list[int]:
        return list(self._by_user)

    def __len__(self) -> int:
        return len(self._owner)

    async def drain(self) -> list[Connection]:
        """Forget every connection and return them, for shutdown."""
        async with self._lock:
            conns = list(self._owner)
            self._owner.clear()
            self._by_user.clear()
        return conns
