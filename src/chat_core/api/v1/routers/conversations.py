from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response, status

from chat_core.api.deps import CurrentPrincipal, GatewayDep, UoWDep
from chat_core.api.v1.schemas.conversation import (
    ConversationResponse,
    CreateDirectConversationRequest,
    CreateGroupConversationRequest,
)
from chat_core.services import conversation_service

router = APIRouter(prefix="/api/v1/chat/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> list[ConversationResponse]:
    summaries = await conversation_service.list_for_user(principal.user_id, uow)
    return [ConversationResponse.from_summary(s) for s in summaries]


@router.post("", response_model=ConversationResponse)
async def create_direct_conversation(
    body: CreateDirectConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
    response: Response,
) -> ConversationResponse:
    """Find or create the direct conversation with ``participantId``.

    Answers 201 when the conversation was created by this call, 200 otherwise.
    """
    conv, created = await conversation_service.find_or_create_direct(
        principal.user_id, body.participant_id, uow,
    )
    summary = await conversation_service.get_summary(conv.id, principal.user_id, uow)
    if created:
        response.status_code = status.HTTP_201_CREATED
        await gateway.publish_conversation(summary, created=True)
    return ConversationResponse.from_summary(summary)


@router.post("/group", response_model=ConversationResponse, status_code=201)
async def create_group_conversation(
    body: CreateGroupConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    gateway: GatewayDep,
) -> ConversationResponse:
    conv = await conversation_service.create_group(
        principal.user_id, body.participant_ids, body.group_name, uow,
    )
    summary = await conversation_service.get_summary(conv.id, principal.user_id, uow)
    await gateway.publish_conversation(summary, created=True)
    return ConversationResponse.from_summary(summary)


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    summary = await conversation_service.get_summary(conversation_id, principal.user_id, uow)
    return ConversationResponse.from_summary(summary)
