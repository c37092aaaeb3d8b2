"""Realtime protocol: authentication, inbound dispatch and participant fan-out."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError

from chat_core.application.dto.conversation import ConversationSummary
from chat_core.application.dto.principal import Principal
from chat_core.application.exceptions import AppError, AuthenticationError, NotParticipantError
from chat_core.application.ports.auth import TokenVerifier
from chat_core.application.uow import UnitOfWork, UoWFactory
from chat_core.domain.entities.message import Message
from chat_core.domain.events.presence_changed import PresenceChanged
from chat_core.infrastructure.ws import protocol
from chat_core.infrastructure.ws.connection import Connection
from chat_core.infrastructure.ws.presence import PresenceTracker
from chat_core.infrastructure.ws.protocol import (
    CallResponseData,
    ConversationRef,
    InitiateCallData,
    MarkAsReadData,
    SendMessageData,
    TypingData,
    UnknownEventType,
    WsOutbound,
)
from chat_core.infrastructure.ws.registry import SessionRegistry
from chat_core.services import conversation_service, message_service

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Any], Awaitable[None]]


class RealtimeGateway:
    def __init__(
        self,
        *,
        registry: SessionRegistry,
        presence: PresenceTracker,
        uow_factory: UoWFactory,
        verifier: TokenVerifier,
    ) -> None:
        self._registry = registry
        self._presence = presence
        self._uow_factory = uow_factory
        self._verifier = verifier
        self._handlers: dict[str, Handler] = {
            "joinConversation": self._on_join,
            "leaveConversation": self._on_leave,
            "sendMessage": self._on_send_message,
            "typing": self._on_typing,
            "markAsRead": self._on_mark_read,
            "ping": self._on_ping,
            "initiateCall": self._on_initiate_call,
            "callResponse": self._on_call_response,
        }

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    # -- lifecycle --------------------------------------------------------

    async def authenticate(self, token: str) -> Principal:
        """Verify the token and resolve its subject to a known user."""
        principal = await self._verifier.verify(token)
        async with self._uow_factory() as uow:
            user = await uow.users.get_by_id(principal.user_id)
        if user is None:
            raise AuthenticationError("Unknown user")
        return principal

    async def connect(self, conn: Connection, principal: Principal) -> None:
        """Register an authenticated connection and auto-join its conversations.

        Every connect asks the tracker to go online, not only the first one:
        if an earlier device failed to record presence, a later one retries.
        On failure this connection is unregistered; the caller closes the socket.
        """
        user_id = principal.user_id
        async with self._uow_factory() as uow:
            conversation_ids = await uow.participants.list_conversation_ids(user_id)

        conn.bind(user_id)
        conn.rooms.update(conversation_ids)
        count = await self._registry.register(user_id, conn)
        logger.info(
            "WS connected: user %s via %r (%d connection(s), %d room(s))",
            user_id, conn, count, len(conversation_ids),
        )
        try:
            change = await self._presence.mark_online(user_id)
        except Exception:
            await self._registry.unregister(conn)
            raise
        if change is not None:
            await self._broadcast_presence(change)

    async def disconnect(self, conn: Connection) -> None:
        result = await self._registry.unregister(conn)
        if result is None:
            return
        logger.info(
            "WS disconnected: user %s via %r (%d remaining)",
            result.user_id, conn, result.remaining,
        )
        if not result.went_offline:
            return
        try:
            change = await self._presence.mark_offline(result.user_id)
        except AppError:
            logger.exception("Could not record offline presence for user %s", result.user_id)
            return
        if change is not None:
            await self._broadcast_presence(change)

    async def shutdown(self) -> None:
        conns = await self._registry.drain()
        await asyncio.gather(
            *(c.close(code=1001, reason="Server shutting down") for c in conns),
        )
        logger.info("Gateway closed %d connection(s)", len(conns))

    # -- inbound ----------------------------------------------------------

    async def handle_frame(self, conn: Connection, raw: str) -> None:
        """Dispatch one client frame; errors go back to this connection only."""
        try:
            event = protocol.parse_inbound(raw)
        except UnknownEventType as exc:
            await conn.send(protocol.error("unknown_type", str(exc)))
            return
        except PydanticValidationError as exc:
            await conn.send(
                protocol.error("invalid_payload", _first_error(exc)),
            )
            return

        try:
            await self._handlers[event.type](conn, event.data)
        except AppError as exc:
            await conn.send(protocol.error(exc.code, exc.detail))

    async def _on_join(self, conn: Connection, data: ConversationRef) -> None:
        conn.join(data.conversation_id)

    async def _on_leave(self, conn: Connection, data: ConversationRef) -> None:
        conn.leave(data.conversation_id)

    async def _on_send_message(self, conn: Connection, data: SendMessageData) -> None:
        async with self._uow_factory() as uow:
            msg = await message_service.append_message(
                data.conversation_id,
                conn.user_id,
                data.content,
                data.message_type,
                None,
                uow,
            )
            summary = await conversation_service.get_summary(
                data.conversation_id, conn.user_id, uow,
            )
        await self.publish_message(msg, summary)

    async def _on_typing(self, conn: Connection, data: TypingData) -> None:
        try:
            async with self._uow_factory() as uow:
                members = await uow.participants.list_user_ids(data.conversation_id)
        except AppError:
            logger.debug("Dropping typing event from %r", conn, exc_info=True)
            return
        if conn.user_id not in members:
            return
        await self.fan_out(
            [uid for uid in members if uid != conn.user_id],
            protocol.user_typing(conn.user_id, data.conversation_id, data.is_typing),
        )

    async def _on_mark_read(self, conn: Connection, data: MarkAsReadData) -> None:
        async with self._uow_factory() as uow:
            msg, receipt = await message_service.mark_read(
                data.message_id, conn.user_id, uow, conversation_id=data.conversation_id,
            )
            if receipt is None:
                return
            members = await uow.participants.list_user_ids(msg.conversation_id)
        await self.fan_out(
            [uid for uid in members if uid != receipt.user_id],
            protocol.message_read(msg.id, msg.conversation_id, receipt.user_id, receipt.read_at),
        )

    async def _on_ping(self, conn: Connection, data: dict[str, Any]) -> None:
        await conn.send(protocol.pong())

    async def _on_initiate_call(self, conn: Connection, data: InitiateCallData) -> None:
        async with self._uow_factory() as uow:
            peers = await self._call_peers(conn, data.conversation_id, uow)
            caller = await uow.users.get_by_id(conn.user_id)
        await self.fan_out(
            peers,
            protocol.incoming_call(
                conn.user_id,
                caller.display_name if caller else None,
                data.conversation_id,
                data.call_type,
                data.call_data,
            ),
        )

    async def _on_call_response(self, conn: Connection, data: CallResponseData) -> None:
        async with self._uow_factory() as uow:
            peers = await self._call_peers(conn, data.conversation_id, uow)
        await self.fan_out(
            peers,
            protocol.call_response(
                conn.user_id, data.conversation_id, data.accepted, data.call_data,
            ),
        )

    @staticmethod
    async def _call_peers(
        conn: Connection, conversation_id: UUID, uow: UnitOfWork,
    ) -> list[int]:
        members = await uow.participants.list_user_ids(conversation_id)
        if conn.user_id not in members:
            raise NotParticipantError()
        return [uid for uid in members if uid != conn.user_id]

    # -- outbound ---------------------------------------------------------

    async def publish_message(
        self,
        msg: Message,
        summary: ConversationSummary,
        *,
        created: bool = False,
    ) -> None:
        """Deliver ``newMessage`` then ``conversationUpdated`` to every participant."""
        if created:
            self._join_live(summary)
        await self.fan_out(summary.participant_ids, protocol.new_message(msg))
        await self.publish_conversation(summary)

    async def publish_conversation(
        self,
        summary: ConversationSummary,
        *,
        created: bool = False,
    ) -> None:
        """Send ``conversationUpdated``.

        Live participants join the room of a conversation only when it was just
        created; after that, room membership is left to the client.
        """
        if created:
            self._join_live(summary)
        await self.fan_out(summary.participant_ids, protocol.conversation_updated(summary))

    def _join_live(self, summary: ConversationSummary) -> None:
        for uid in summary.participant_ids:
            for conn in self._registry.handles_for(uid):
                conn.join(summary.id)

    async def publish_message_deleted(self, msg: Message, participant_ids: Iterable[int]) -> None:
        await self.fan_out(participant_ids, protocol.message_deleted(msg.id, msg.conversation_id))

    async def fan_out(self, user_ids: Iterable[int], event: WsOutbound) -> int:
        """Send ``event`` to every live connection of ``user_ids``.

        A failing connection is skipped; it is cleaned up by its own read
        loop. Returns the number of successful deliveries.
        """
        targets = [
            conn
            for uid in dict.fromkeys(user_ids)
            for conn in self._registry.handles_for(uid)
        ]
        if not targets:
            return 0

        raw = event.model_dump_json()
        results = await asyncio.gather(
            *(conn.send(raw) for conn in targets), return_exceptions=True,
        )
        delivered = 0
        for conn, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.debug("Dropping %s for %r: %s", event.type, conn, result)
            else:
                delivered += 1
        return delivered

    async def _broadcast_presence(self, change: PresenceChanged) -> None:
        others = [uid for uid in self._registry.online_user_ids() if uid != change.user_id]
        await self.fan_out(others, protocol.presence_changed(change))


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Malformed event"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    return f"{loc}: {first.get('msg', 'invalid')}" if loc else first.get("msg", "invalid")
