from __future__ import annotations

from datetime import datetime
from uuid import UUID

from chat_core.api.v1.schemas.common import CamelModel
from chat_core.api.v1.schemas.conversation import ConversationResponse
from chat_core.domain.entities.message import Message


class AttachmentResponse(CamelModel):
    url: str
    file_name: str
    size_bytes: int


class ReadReceiptResponse(CamelModel):
    user_id: int
    read_at: datetime


class MessageResponse(CamelModel):
    id: UUID
    conversation_id: UUID
    sender_id: int
    content: str
    message_type: str
    attachment: AttachmentResponse | None
    created_at: datetime
    read_by: list[ReadReceiptResponse]

    @classmethod
    def from_entity(cls, msg: Message) -> MessageResponse:
        attachment = None
        if msg.attachment is not None:
            attachment = AttachmentResponse(
                url=msg.attachment.url,
                file_name=msg.attachment.file_name,
                size_bytes=msg.attachment.size_bytes,
            )
        return cls(
            id=msg.id,
            conversation_id=msg.conversation_id,
            sender_id=msg.sender_id,
            content=msg.content,
            message_type=msg.type,
            attachment=attachment,
            created_at=msg.created_at,
            read_by=[
                ReadReceiptResponse(user_id=r.user_id, read_at=r.read_at)
                for r in msg.read_by
            ],
        )


class DirectMessageResponse(CamelModel):
    conversation: ConversationResponse
    message: MessageResponse
