from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from chat_core.domain.entities.presence import Presence
from chat_core.infrastructure.db.mappers import presence as mapper
from chat_core.infrastructure.db.models.presence import PresenceModel


class PresenceReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: int) -> Presence | None:
        model = await self._session.get(PresenceModel, user_id)
        return mapper.model_to_entity(model) if model else None

    async def get_many(self, user_ids: list[int]) -> dict[int, Presence]:
        if not user_ids:
            return {}
        stmt = select(PresenceModel).where(PresenceModel.user_id.in_(user_ids))
        result = await self._session.execute(stmt)
        return {m.user_id: mapper.model_to_entity(m) for m in result.scalars().all()}


class PresenceWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert(self, presence: Presence) -> None:
        stmt = (
            pg_insert(PresenceModel)
            .values(
                user_id=presence.user_id,
                is_online=presence.is_online,
                last_seen_at=presence.last_seen_at,
            )
            .on_conflict_do_update(
                index_elements=[PresenceModel.user_id],
                set_={
                    "is_online": presence.is_online,
                    "last_seen_at": presence.last_seen_at,
                },
            )
        )
        await self._session.execute(stmt)

    async def mark_all_offline(self, last_seen_at: datetime) -> int:
        stmt = (
            update(PresenceModel)
            .where(PresenceModel.is_online.is_(True))
            .values(is_online=False, last_seen_at=last_seen_at)
        )
        result = await self._session.execute(stmt)
        return result.rowcount or 0
