from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from chat_core.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from chat_core.application.repositories.message import MessageReader, MessageWriter
from chat_core.application.repositories.participant import (
    ParticipantReader,
    ParticipantWriter,
)
from chat_core.application.repositories.presence import PresenceReader, PresenceWriter
from chat_core.application.repositories.user import UserReader, UserWriter


class UnitOfWork(Protocol):
    conversations: ConversationReader
    conversations_w: ConversationWriter
    participants: ParticipantReader
    participants_w: ParticipantWriter
    messages: MessageReader
    messages_w: MessageWriter
    users: UserReader
    users_w: UserWriter
    presence: PresenceReader
    presence_w: PresenceWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


# Opens one transaction scope per call; used by long-lived components
# (gateway, presence tracker) that cannot rely on request-scoped DI.
UoWFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
