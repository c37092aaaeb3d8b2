from __future__ import annotations

from uuid import UUID

from chat_core.application.exceptions import (
    ConversationNotFoundError,
    NotParticipantError,
)
from chat_core.application.repositories.participant import ParticipantReader
from chat_core.domain.entities.conversation import Conversation


async def assert_participant(
    user_id: int,
    conversation: Conversation | None,
    participants: ParticipantReader,
) -> Conversation:
    """Raise if conversation doesn't exist or the user is not a member."""
    if conversation is None:
        raise ConversationNotFoundError()

    if not await participants.is_participant(conversation.id, user_id):
        raise NotParticipantError()

    return conversation


async def assert_member_of(
    user_id: int,
    conversation_id: UUID,
    participants: ParticipantReader,
) -> None:
    if not await participants.is_participant(conversation_id, user_id):
        raise NotParticipantError()
