from __future__ import annotations

from collections.abc import Iterable

from chat_core.domain.entities.message import Attachment, Message, ReadReceipt
from chat_core.infrastructure.db.models.message import MessageModel, MessageReadModel


def model_to_entity(
    model: MessageModel,
    reads: Iterable[MessageReadModel] = (),
) -> Message:
    attachment = None
    if model.attachment_url is not None:
        attachment = Attachment(
            url=model.attachment_url,
            file_name=model.attachment_file_name or "",
            size_bytes=model.attachment_size_bytes or 0,
        )
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        content=model.content,
        type=model.type,
        attachment=attachment,
        created_at=model.created_at,
        read_by=tuple(ReadReceipt(user_id=r.user_id, read_at=r.read_at) for r in reads),
        seq=model.seq,
    )


def entity_to_values(entity: Message) -> dict:
    """Insert values; ``seq`` is left to the database identity."""
    attachment = entity.attachment
    return {
        "id": entity.id,
        "conversation_id": entity.conversation_id,
        "sender_id": entity.sender_id,
        "type": entity.type,
        "content": entity.content,
        "attachment_url": attachment.url if attachment else None,
        "attachment_file_name": attachment.file_name if attachment else None,
        "attachment_size_bytes": attachment.size_bytes if attachment else None,
        "created_at": entity.created_at,
    }
