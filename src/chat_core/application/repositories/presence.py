from __future__ import annotations

from datetime import datetime
from typing import Protocol

from chat_core.domain.entities.presence import Presence


class PresenceReader(Protocol):
    async def get(self, user_id: int) -> Presence | None: ...

    async def get_many(self, user_ids: list[int]) -> dict[int, Presence]: ...


class PresenceWriter(Protocol):
    async def upsert(self, presence: Presence) -> None: ...

    async def mark_all_offline(self, last_seen_at: datetime) -> int:
        """Flip every online row to offline; returns how many changed."""
        ...
