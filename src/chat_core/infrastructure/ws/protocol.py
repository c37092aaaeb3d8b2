"""WebSocket message envelope models.

Every frame is ``{"type": ..., "data": {...}}`` with camelCase field names.
"""
from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from chat_core.api.v1.schemas.common import CamelModel
from chat_core.api.v1.schemas.conversation import ConversationResponse
from chat_core.api.v1.schemas.message import MessageResponse
from chat_core.application.dto.conversation import ConversationSummary
from chat_core.application.exceptions import AuthenticationError
from chat_core.domain.entities.message import Message
from chat_core.domain.events.presence_changed import PresenceChanged
from chat_core.domain.value_objects.enums import MessageType


class WsInbound(BaseModel):
    """Client → Server."""

    type: str
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str
    data: dict[str, Any] = {}


class Outbound(StrEnum):
    NEW_MESSAGE = "newMessage"
    CONVERSATION_UPDATED = "conversationUpdated"
    USER_TYPING = "userTyping"
    MESSAGE_READ = "messageRead"
    MESSAGE_DELETED = "messageDeleted"
    USER_ONLINE = "userOnline"
    USER_OFFLINE = "userOffline"
    INCOMING_CALL = "incomingCall"
    CALL_RESPONSE = "callResponse"
    ERROR = "error"
    PONG = "pong"


# -- inbound payloads -------------------------------------------------------


class ConversationRef(CamelModel):
    conversation_id: UUID


class SendMessageData(CamelModel):
    conversation_id: UUID
    content: str = ""
    message_type: MessageType = MessageType.TEXT


class TypingData(CamelModel):
    conversation_id: UUID
    is_typing: bool


class MarkAsReadData(CamelModel):
    message_id: UUID
    conversation_id: UUID


class InitiateCallData(CamelModel):
    conversation_id: UUID
    call_type: str = Field(default="video", min_length=1, max_length=20)
    # opaque signalling payload (SDP offer, ICE candidates), relayed untouched
    call_data: dict[str, Any] = {}


class CallResponseData(CamelModel):
    conversation_id: UUID
    accepted: bool
    call_data: dict[str, Any] = {}


class AuthenticateData(CamelModel):
    token: str = Field(min_length=1)


class JoinConversation(BaseModel):
    type: Literal["joinConversation"]
    data: ConversationRef


class LeaveConversation(BaseModel):
    type: Literal["leaveConversation"]
    data: ConversationRef


class SendMessage(BaseModel):
    type: Literal["sendMessage"]
    data: SendMessageData


class Typing(BaseModel):
    type: Literal["typing"]
    data: TypingData


class MarkAsRead(BaseModel):
    type: Literal["markAsRead"]
    data: MarkAsReadData


class Ping(BaseModel):
    type: Literal["ping"]
    data: dict[str, Any] = {}


class InitiateCall(BaseModel):
    type: Literal["initiateCall"]
    data: InitiateCallData


class CallResponse(BaseModel):
    type: Literal["callResponse"]
    data: CallResponseData


class Authenticate(BaseModel):
    type: Literal["authenticate"]
    data: AuthenticateData


InboundEvent = Annotated[
    Union[
        JoinConversation,
        LeaveConversation,
        SendMessage,
        Typing,
        MarkAsRead,
        Ping,
        InitiateCall,
        CallResponse,
    ],
    Field(discriminator="type"),
]

INBOUND_TYPES = frozenset(
    {
        "joinConversation",
        "leaveConversation",
        "sendMessage",
        "typing",
        "markAsRead",
        "ping",
        "initiateCall",
        "callResponse",
    }
)

_inbound_adapter: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)


class UnknownEventType(ValueError):
    def __init__(self, event_type: str) -> None:
        super().__init__(f"Unknown event type: {event_type}")
        self.event_type = event_type


def parse_inbound(raw: str) -> InboundEvent:
    """Validate a client frame.

    Raises ``pydantic.ValidationError`` for malformed frames and
    ``UnknownEventType`` for a well-formed envelope with an unsupported type.
    """
    envelope = WsInbound.model_validate_json(raw)
    if envelope.type not in INBOUND_TYPES:
        raise UnknownEventType(envelope.type)
    return _inbound_adapter.validate_python(envelope.model_dump())


def parse_authenticate(raw: str) -> str:
    """Extract the token from an ``authenticate`` frame."""
    try:
        frame = Authenticate.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise AuthenticationError("Expected an authenticate frame") from exc
    return frame.data.token


# -- outbound builders --------------------------------------------------------


def _event(event_type: Outbound, payload: CamelModel | dict[str, Any]) -> WsOutbound:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    return WsOutbound(type=event_type.value, data=payload)


class _TypingPayload(CamelModel):
    user_id: int
    conversation_id: UUID
    is_typing: bool


class _ReadPayload(CamelModel):
    message_id: UUID
    conversation_id: UUID
    user_id: int
    read_at: datetime


class _DeletedPayload(CamelModel):
    message_id: UUID
    conversation_id: UUID


class _PresencePayload(CamelModel):
    user_id: int
    last_seen_at: datetime | None = None


class _IncomingCallPayload(CamelModel):
    from_user_id: int
    from_name: str | None
    conversation_id: UUID
    call_type: str
    call_data: dict[str, Any]


class _CallResponsePayload(CamelModel):
    from_user_id: int
    conversation_id: UUID
    accepted: bool
    call_data: dict[str, Any]


class _ErrorPayload(CamelModel):
    code: str
    message: str


def new_message(msg: Message) -> WsOutbound:
    return _event(Outbound.NEW_MESSAGE, MessageResponse.from_entity(msg))


def conversation_updated(summary: ConversationSummary) -> WsOutbound:
    return _event(Outbound.CONVERSATION_UPDATED, ConversationResponse.from_summary(summary))


def user_typing(user_id: int, conversation_id: UUID, is_typing: bool) -> WsOutbound:
    return _event(
        Outbound.USER_TYPING,
        _TypingPayload(user_id=user_id, conversation_id=conversation_id, is_typing=is_typing),
    )


def message_read(
    message_id: UUID, conversation_id: UUID, user_id: int, read_at: datetime,
) -> WsOutbound:
    return _event(
        Outbound.MESSAGE_READ,
        _ReadPayload(
            message_id=message_id,
            conversation_id=conversation_id,
            user_id=user_id,
            read_at=read_at,
        ),
    )


def message_deleted(message_id: UUID, conversation_id: UUID) -> WsOutbound:
    return _event(
        Outbound.MESSAGE_DELETED,
        _DeletedPayload(message_id=message_id, conversation_id=conversation_id),
    )


def presence_changed(change: PresenceChanged) -> WsOutbound:
    if change.is_online:
        return _event(Outbound.USER_ONLINE, _PresencePayload(user_id=change.user_id))
    return _event(
        Outbound.USER_OFFLINE,
        _PresencePayload(user_id=change.user_id, last_seen_at=change.last_seen_at),
    )


def error(code: str, message: str) -> WsOutbound:
    return _event(Outbound.ERROR, _ErrorPayload(code=code, message=message))


def pong() -> WsOutbound:
    return _event(Outbound.PONG, {})


def incoming_call(
    from_user_id: int,
    from_name: str | None,
    conversation_id: UUID,
    call_type: str,
    call_data: dict[str, Any],
) -> WsOutbound:
    return _event(
        Outbound.INCOMING_CALL,
        _IncomingCallPayload(
            from_user_id=from_user_id,
            from_name=from_name,
            conversation_id=conversation_id,
            call_type=call_type,
            call_data=call_data,
        ),
    )


def call_response(
    from_user_id: int, conversation_id: UUID, accepted: bool, call_data: dict[str, Any],
) -> WsOutbound:
    return _event(
        Outbound.CALL_RESPONSE,
        _CallResponsePayload(
            from_user_id=from_user_id,
            conversation_id=conversation_id,
            accepted=accepted,
            call_data=call_data,
        ),
    )
