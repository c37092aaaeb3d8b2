from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chat_core.domain.entities.participant import Participant
from chat_core.infrastructure.db.mappers import participant as mapper
from chat_core.infrastructure.db.models.participant import ParticipantModel


class ParticipantReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def is_participant(self, conversation_id: UUID, user_id: int) -> bool:
        stmt = (
            select(ParticipantModel.id)
            .where(
                ParticipantModel.conversation_id == conversation_id,
                ParticipantModel.user_id == user_id,
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_user_ids(self, conversation_id: UUID) -> list[int]:
        stmt = (
            select(ParticipantModel.user_id)
            .where(ParticipantModel.conversation_id == conversation_id)
            .order_by(ParticipantModel.position, ParticipantModel.joined_at)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_conversations(
        self,
        conversation_ids: list[UUID],
    ) -> dict[UUID, list[Participant]]:
        if not conversation_ids:
            return {}
        stmt = (
            select(ParticipantModel)
            .where(ParticipantModel.conversation_id.in_(conversation_ids))
            .order_by(ParticipantModel.position, ParticipantModel.joined_at)
        )
        result = await self._session.execute(stmt)
        grouped: dict[UUID, list[Participant]] = defaultdict(list)
        for model in result.scalars().all():
            grouped[model.conversation_id].append(mapper.model_to_entity(model))
        return grouped

    async def list_conversation_ids(self, user_id: int) -> list[UUID]:
        stmt = select(ParticipantModel.conversation_id).where(
            ParticipantModel.user_id == user_id
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class ParticipantWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_many(self, participants: list[Participant]) -> None:
        self._session.add_all([mapper.entity_to_model(p) for p in participants])
        await self._session.flush()
