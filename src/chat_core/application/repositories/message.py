from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from chat_core.domain.entities.message import Message


class MessageReader(Protocol):
    async def get_by_id(self, message_id: UUID) -> Message | None: ...

    async def get_many(self, message_ids: list[UUID]) -> dict[UUID, Message]: ...

    async def list_newest_first(
        self,
        conversation_id: UUID,
        *,
        offset: int,
        limit: int,
    ) -> list[Message]:
        """Messages in descending write order, with read receipts loaded."""
        ...

    async def latest(self, conversation_id: UUID) -> Message | None: ...


class MessageWriter(Protocol):
    async def create(self, message: Message) -> Message:
        """Insert and return the stored message with its ``seq`` assigned."""
        ...

    async def delete(self, message_id: UUID) -> None: ...

    async def add_read(self, message_id: UUID, user_id: int, read_at: datetime) -> bool:
        """Record a read receipt. Returns False if the user already read it."""
        ...
