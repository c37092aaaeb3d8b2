from __future__ import annotations

from typing import Protocol
from uuid import UUID

from chat_core.domain.entities.participant import Participant


class ParticipantReader(Protocol):
    async def is_participant(self, conversation_id: UUID, user_id: int) -> bool: ...

    async def list_user_ids(self, conversation_id: UUID) -> list[int]:
        """Participant ids in membership order."""
        ...

    async def list_for_conversations(
        self, conversation_ids: list[UUID],
    ) -> dict[UUID, list[Participant]]: ...

    async def list_conversation_ids(self, user_id: int) -> list[UUID]: ...


class ParticipantWriter(Protocol):
    async def add_many(self, participants: list[Participant]) -> None: ...
