from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, File, Form, Query, UploadFile

from chat_core.api.deps import CurrentPrincipal, GatewayDep, MediaIngestDep, UoWDep
from chat_core.api.v1.schemas.conversation import ConversationResponse
from chat_core.api.v1.schemas.message import (
    DirectMessageResponse,
    MessageResponse,
)
from chat_core.application.dto.message import UploadedFile
from chat_core.application.policies.permissions import assert_participant
from chat_core.application.ports.media import MediaIngest
from chat_core.config import settings
from chat_core.domain.entities.message import Attachment
from chat_core.domain.value_objects.enums import MessageType
from chat_core.infrastructure.ws import protocol
from chat_core.services import conversation_service, media_service, message_service

router = APIRouter(prefix="/api/v1/chat", tags=["messages"])

ContentForm = Annotated[str, Form()]
MessageTypeForm = Annotated[MessageType, Form(alias="messageType")]
FileForm = Annotated[UploadFile | None, File()]


async def _ingest(
    file: UploadFile | None,
    message_type: MessageType,
    media: MediaIngest,
) -> tuple[Attachment | None, MessageType]:
    if file is None:
        return None, message_type
    upload = UploadedFile(
        file_name=file.filename or "upload",
        content_type=file.content_type or "application/octet-stream",
        data=await file.read(),
    )
    attachment = await media_service.ingest(upload, media)
    if message_type == MessageType.TEXT:
        message_type = media_service.message_type_for(upload.content_type)
    return attachment, message_type


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[MessageResponse],
)
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    page: int = Query(1),
    limit: int = Query(settings.MESSAGES_PAGE_SIZE),
) -> list[MessageResponse]:
    messages = await message_service.list_messages(
        conversation_id, principal.user_id, page, limit, uow,
    )
    return [MessageResponse.from_entity(m) for m in messages]


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=201,
)
async def send_message(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
    media: MediaIngestDep,
    content: ContentForm = "",
    message_type: MessageTypeForm = MessageType.TEXT,
    file: FileForm = None,
) -> MessageResponse:
    conversation = await uow.conversations.get_by_id(conversation_id)
    await assert_participant(principal.user_id, conversation, uow.participants)

    attachment, message_type = await _ingest(file, message_type, media)
    msg = await message_service.append_message(
        conversation_id, principal.user_id, content, message_type, attachment, uow,
    )
    summary = await conversation_service.get_summary(conversation_id, principal.user_id, uow)
    await gateway.publish_message(msg, summary)
    return MessageResponse.from_entity(msg)


@router.post(
    "/users/{recipient_id}/messages",
    response_model=DirectMessageResponse,
    status_code=201,
)
async def send_direct_message(
    recipient_id: int,
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
    media: MediaIngestDep,
    content: ContentForm = "",
    message_type: MessageTypeForm = MessageType.TEXT,
    file: FileForm = None,
) -> DirectMessageResponse:
    """Send to a user, creating the direct conversation on first contact."""
    attachment, message_type = await _ingest(file, message_type, media)
    conv, msg, created = await message_service.send_direct_message(
        principal.user_id, recipient_id, content, message_type, attachment, uow,
    )
    summary = await conversation_service.get_summary(conv.id, principal.user_id, uow)
    await gateway.publish_message(msg, summary, created=created)
    return DirectMessageResponse(
        conversation=ConversationResponse.from_summary(summary),
        message=MessageResponse.from_entity(msg),
    )


@router.delete("/messages/{message_id}", status_code=204)
async def delete_message(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
) -> None:
    msg = await message_service.delete_message(message_id, principal.user_id, uow)
    summary = await conversation_service.get_summary(
        msg.conversation_id, principal.user_id, uow,
    )
    await gateway.publish_message_deleted(msg, summary.participant_ids)
    await gateway.publish_conversation(summary)


@router.post("/messages/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
) -> MessageResponse:
    msg, receipt = await message_service.mark_read(message_id, principal.user_id, uow)
    if receipt is not None:
        members = await uow.participants.list_user_ids(msg.conversation_id)
        await gateway.fan_out(
            [uid for uid in members if uid != receipt.user_id],
            protocol.message_read(msg.id, msg.conversation_id, receipt.user_id, receipt.read_at),
        )
    current = await uow.messages.get_by_id(message_id)
    return MessageResponse.from_entity(current or msg)
