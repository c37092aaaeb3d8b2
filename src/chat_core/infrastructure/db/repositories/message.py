from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from chat_core.domain.entities.message import Message
from chat_core.infrastructure.db.mappers import message as mapper
from chat_core.infrastructure.db.models.message import MessageModel, MessageReadModel


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, message_id: UUID) -> Message | None:
        model = await self._session.get(MessageModel, message_id)
        if model is None:
            return None
        reads = await self._reads_for([model.id])
        return mapper.model_to_entity(model, reads.get(model.id, []))

    async def get_many(self, message_ids: list[UUID]) -> dict[UUID, Message]:
        if not message_ids:
            return {}
        stmt = select(MessageModel).where(MessageModel.id.in_(message_ids))
        result = await self._session.execute(stmt)
        return {m.id: mapper.model_to_entity(m) for m in result.scalars().all()}

    async def list_newest_first(
        self,
        conversation_id: UUID,
        *,
        offset: int,
        limit: int,
    ) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.seq.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        models = result.scalars().all()
        reads = await self._reads_for([m.id for m in models])
        return [mapper.model_to_entity(m, reads.get(m.id, [])) for m in models]

    async def latest(self, conversation_id: UUID) -> Message | None:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.seq.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def _reads_for(self, message_ids: list[UUID]) -> dict[UUID, list[MessageReadModel]]:
        if not message_ids:
            return {}
        stmt = (
            select(MessageReadModel)
            .where(MessageReadModel.message_id.in_(message_ids))
            .order_by(MessageReadModel.read_at.asc())
        )
        result = await self._session.execute(stmt)
        grouped: dict[UUID, list[MessageReadModel]] = defaultdict(list)
        for read in result.scalars().all():
            grouped[read.message_id].append(read)
        return grouped


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, message: Message) -> Message:
        stmt = (
            pg_insert(MessageModel)
            .values(**mapper.entity_to_values(message))
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())

    async def delete(self, message_id: UUID) -> None:
        await self._session.execute(
            delete(MessageModel).where(MessageModel.id == message_id)
        )

    async def add_read(self, message_id: UUID, user_id: int, read_at: datetime) -> bool:
        stmt = (
            pg_insert(MessageReadModel)
            .values(message_id=message_id, user_id=user_id, read_at=read_at)
            .on_conflict_do_nothing(constraint="uq_message_reads_reader")
            .returning(MessageReadModel.id)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None
