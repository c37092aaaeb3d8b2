from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from chat_core.api.v1.schemas.common import CamelModel
from chat_core.application.dto.conversation import ConversationSummary


class CreateDirectConversationRequest(CamelModel):
    participant_id: int


class CreateGroupConversationRequest(CamelModel):
    participant_ids: list[int] = Field(min_length=2)
    group_name: str = Field(min_length=1, max_length=100)


class ParticipantResponse(CamelModel):
    user_id: int
    display_name: str
    avatar_url: str | None
    is_online: bool


class LastMessageResponse(CamelModel):
    id: UUID
    sender_id: int
    content: str
    message_type: str
    created_at: datetime


class ConversationResponse(CamelModel):
    id: UUID
    is_group: bool
    group_name: str | None
    participants: list[ParticipantResponse]
    last_message: LastMessageResponse | None
    last_message_at: datetime | None
    created_at: datetime

    @classmethod
    def from_summary(cls, summary: ConversationSummary) -> ConversationResponse:
        last = summary.last_message
        return cls(
            id=summary.id,
            is_group=summary.is_group,
            group_name=summary.group_name,
            participants=[
                ParticipantResponse(
                    user_id=p.user_id,
                    display_name=p.display_name,
                    avatar_url=p.avatar_url,
                    is_online=p.is_online,
                )
                for p in summary.participants
            ],
            last_message=LastMessageResponse(
                id=last.id,
                sender_id=last.sender_id,
                content=last.content,
                message_type=last.type,
                created_at=last.created_at,
            ) if last else None,
            last_message_at=summary.last_message_at,
            created_at=summary.created_at,
        )
