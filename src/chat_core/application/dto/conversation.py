from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True, slots=True)
class ParticipantInfo:
    user_id: int
    display_name: str
    avatar_url: str | None
    is_online: bool


@dataclass(frozen=True, slots=True)
class MessagePreview:
    id: UUID
    sender_id: int
    content: str
    type: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    id: UUID
    is_group: bool
    group_name: str | None
    participants: tuple[ParticipantInfo, ...]
    last_message: MessagePreview | None
    last_message_at: datetime | None
    created_at: datetime

    @property
    def participant_ids(self) -> list[int]:
        return [p.user_id for p in self.participants]
