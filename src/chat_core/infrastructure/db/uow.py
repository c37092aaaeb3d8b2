from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from types import TracebackType
from typing import AsyncIterator, Self

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from chat_core.application.exceptions import StoreUnavailableError
from chat_core.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from chat_core.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from chat_core.infrastructure.db.repositories.participant import (
    ParticipantReaderRepo,
    ParticipantWriterRepo,
)
from chat_core.infrastructure.db.repositories.presence import (
    PresenceReaderRepo,
    PresenceWriterRepo,
)
from chat_core.infrastructure.db.repositories.user import UserReaderRepo, UserWriterRepo
from chat_core.infrastructure.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)

# Connectivity-level failures. Constraint violations and programming errors
# are bugs, not outages, and propagate unchanged.
TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError)


class SqlAlchemyUoW:
    """Concrete Unit-of-Work backed by a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self.conversations = ConversationReaderRepo(session)
        self.conversations_w = ConversationWriterRepo(session)
        self.participants = ParticipantReaderRepo(session)
        self.participants_w = ParticipantWriterRepo(session)
        self.messages = MessageReaderRepo(session)
        self.messages_w = MessageWriterRepo(session)
        self.users = UserReaderRepo(session)
        self.users_w = UserWriterRepo(session)
        self.presence = PresenceReaderRepo(session)
        self.presence_w = PresenceWriterRepo(session)

    async def flush(self) -> None:
        await self._session.flush()

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            await self.rollback()


@asynccontextmanager
async def open_uow() -> AsyncIterator[SqlAlchemyUoW]:
    """One session / transaction scope; transient DB failures surface as StoreUnavailableError."""
    async with AsyncSessionLocal() as session:
        async with SqlAlchemyUoW(session) as uow:
            try:
                yield uow
            except TRANSIENT_DB_ERRORS as exc:
                logger.warning("Persistence failure: %s", exc)
                raise StoreUnavailableError() from exc
