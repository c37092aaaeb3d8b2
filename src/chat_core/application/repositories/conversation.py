from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from chat_core.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def get_by_direct_key(self, key: str) -> Conversation | None: ...

    async def list_for_user(self, user_id: int) -> list[Conversation]:
        """Conversations of a participant, most recently active first, never-messaged last."""
        ...


class ConversationWriter(Protocol):
    async def create(self, conversation: Conversation) -> Conversation: ...

    async def create_direct_if_absent(
        self, conversation: Conversation,
    ) -> tuple[Conversation, bool]:
        """Insert unless a conversation with the same direct_key exists.

        Returns (conversation, created). Must be race-free: concurrent callers
        for the same key all get the single stored row.
        """
        ...

    async def lock(self, conversation_id: UUID) -> Conversation | None:
        """Load the conversation and hold a row lock until the transaction ends."""
        ...

    async def set_last_message(
        self,
        conversation_id: UUID,
        message_id: UUID | None,
        ts: datetime | None,
    ) -> None: ...
