from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Protocol

from chat_core.domain.value_objects.enums import ConnectionState
from chat_core.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """The subset of ``fastapi.WebSocket`` a connection needs."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...


class Connection:
    """One live client session.

    Hashable by identity so the registry can key on it. Sends are serialized
    so concurrent fan-outs never interleave frames on the same socket.
    """

    def __init__(self, transport: Transport, *, client: str = "unknown") -> None:
        self.id = uuid.uuid4().hex[:12]
        self.client = client
        self.user_id: int | None = None
        self.state = ConnectionState.CONNECTING
        self.rooms: set[uuid.UUID] = set()
        self._transport = transport
        self._send_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, user_id={self.user_id!r}, state={self.state.value!r})"

    @property
    def is_open(self) -> bool:
        return self.state != ConnectionState.CLOSED

    def bind(self, user_id: int) -> None:
        self.user_id = user_id
        self.state = ConnectionState.AUTHENTICATED

    def join(self, conversation_id: uuid.UUID) -> None:
        self.rooms.add(conversation_id)

    def leave(self, conversation_id: uuid.UUID) -> None:
        self.rooms.discard(conversation_id)

    async def send(self, event: WsOutbound | str) -> None:
        raw = event if isinstance(event, str) else event.model_dump_json()
        async with self._send_lock:
            if not self.is_open:
                raise ConnectionError(f"{self!r} is closed")
            await self._transport.send_text(raw)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        if not self.is_open:
            return
        self.state = ConnectionState.CLOSED
        try:
            await self._transport.close(code=code, reason=reason)
        except Exception:
            # The peer may already be gone.
            logger.debug("Close failed for %r", self, exc_info=True)
