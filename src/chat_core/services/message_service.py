from __future__ import annotations

import uuid
from datetime import datetime, timezone

from chat_core.application.exceptions import (
    ConversationNotFoundError,
    MessageNotFoundError,
    NotOwnerError,
    NotParticipantError,
    ValidationError,
)
from chat_core.application.policies.permissions import assert_member_of, assert_participant
from chat_core.application.uow import UnitOfWork
from chat_core.config import settings
from chat_core.domain.entities.conversation import Conversation
from chat_core.domain.entities.message import Attachment, Message, ReadReceipt
from chat_core.domain.value_objects.enums import MessageType
from chat_core.services import conversation_service


async def append_message(
    conversation_id: uuid.UUID,
    sender_id: int,
    content: str | None,
    msg_type: MessageType,
    attachment: Attachment | None,
    uow: UnitOfWork,
) -> Message:
    """Persist a message and move the conversation's last-message pointer.

    The conversation row stays locked from the membership check until commit,
    so the insert and the pointer update become visible together.
    """
    conversation = await uow.conversations_w.lock(conversation_id)
    if conversation is None:
        raise ConversationNotFoundError()
    if not await uow.participants.is_participant(conversation_id, sender_id):
        raise NotParticipantError()

    body = _validate_content(content, msg_type, attachment)

    msg = Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=body,
        type=msg_type.value,
        attachment=attachment,
        created_at=datetime.now(timezone.utc),
    )
    msg = await uow.messages_w.create(msg)
    await uow.conversations_w.set_last_message(conversation_id, msg.id, msg.created_at)
    await uow.commit()
    return msg


async def send_direct_message(
    sender_id: int,
    recipient_id: int,
    content: str | None,
    msg_type: MessageType,
    attachment: Attachment | None,
    uow: UnitOfWork,
) -> tuple[Conversation, Message, bool]:
    """Append to the direct conversation with ``recipient_id``, creating it if needed.

    The flag tells whether the conversation was created by this call.
    """
    conversation, created = await conversation_service.find_or_create_direct(
        sender_id, recipient_id, uow,
    )
    msg = await append_message(
        conversation.id, sender_id, content, msg_type, attachment, uow,
    )
    return conversation, msg, created


async def list_messages(
    conversation_id: uuid.UUID,
    requester_id: int,
    page: int,
    page_size: int,
    uow: UnitOfWork,
) -> list[Message]:
    """Page 1 holds the newest ``page_size`` messages; each page is oldest-first."""
    if page < 1:
        raise ValidationError("Page must be a positive integer")
    if not 1 <= page_size <= settings.MESSAGES_MAX_PAGE_SIZE:
        raise ValidationError(
            f"Limit must be between 1 and {settings.MESSAGES_MAX_PAGE_SIZE}"
        )

    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_participant(requester_id, conversation, uow.participants)

    newest_first = await uow.messages.list_newest_first(
        conversation_id, offset=(page - 1) * page_size, limit=page_size,
    )
    return list(reversed(newest_first))


async def delete_message(
    message_id: uuid.UUID,
    requester_id: int,
    uow: UnitOfWork,
) -> Message:
    """Hard-delete a message; only its sender may do so. Returns the deleted message."""
    msg = await uow.messages.get_by_id(message_id)
    if msg is None:
        raise MessageNotFoundError()
    if msg.sender_id != requester_id:
        raise NotOwnerError()

    conversation = await uow.conversations_w.lock(msg.conversation_id)
    await uow.messages_w.delete(message_id)

    if conversation is not None and conversation.last_message_id == message_id:
        previous = await uow.messages.latest(msg.conversation_id)
        await uow.conversations_w.set_last_message(
            msg.conversation_id,
            previous.id if previous else None,
            previous.created_at if previous else None,
        )

    await uow.commit()
    return msg


async def mark_read(
    message_id: uuid.UUID,
    user_id: int,
    uow: UnitOfWork,
    *,
    conversation_id: uuid.UUID | None = None,
) -> tuple[Message, ReadReceipt | None]:
    """Record that ``user_id`` read the message.

    Returns (message, receipt); receipt is None when it was already recorded.
    """
    msg = await uow.messages.get_by_id(message_id)
    if msg is None or (conversation_id is not None and msg.conversation_id != conversation_id):
        raise MessageNotFoundError()
    await assert_member_of(user_id, msg.conversation_id, uow.participants)

    read_at = datetime.now(timezone.utc)
    added = await uow.messages_w.add_read(message_id, user_id, read_at)
    if not added:
        return msg, None

    await uow.commit()
    return msg, ReadReceipt(user_id=user_id, read_at=read_at)


def _validate_content(
    content: str | None,
    msg_type: MessageType,
    attachment: Attachment | None,
) -> str:
    body = (content or "").strip()
    if len(body) > settings.MESSAGE_MAX_LENGTH:
        raise ValidationError(
            f"Message content cannot exceed {settings.MESSAGE_MAX_LENGTH} characters"
        )
    if attachment is not None:
        # Caption is optional for attachments; fall back to the media URL.
        return body or attachment.url
    if not body:
        if msg_type == MessageType.TEXT:
            raise ValidationError("Message content is required")
        raise ValidationError(f"A {msg_type.value} message needs an attachment or a URL")
    return body
