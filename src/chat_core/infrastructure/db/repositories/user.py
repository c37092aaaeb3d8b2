from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chat_core.domain.entities.user import User
from chat_core.infrastructure.db.mappers import user as mapper
from chat_core.infrastructure.db.models.user import UserModel


class UserReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: int) -> User | None:
        model = await self._session.get(UserModel, user_id)
        return mapper.model_to_entity(model) if model else None

    async def get_many(self, user_ids: list[int]) -> dict[int, User]:
        if not user_ids:
            return {}
        stmt = select(UserModel).where(UserModel.id.in_(user_ids))
        result = await self._session.execute(stmt)
        return {m.id: mapper.model_to_entity(m) for m in result.scalars().all()}

    async def get_by_external_id(self, external_id: str) -> User | None:
        stmt = select(UserModel).where(UserModel.external_id == external_id)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(UserModel).where(UserModel.email == email)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None


class UserWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        display_name: str,
        email: str | None,
        external_id: str | None,
        avatar_url: str | None,
        mobile: str | None = None,
    ) -> User:
        model = UserModel(
            display_name=display_name,
            email=email,
            external_id=external_id,
            avatar_url=avatar_url,
            mobile=mobile,
        )
        self._session.add(model)
        await self._session.flush()
        await self._session.refresh(model)
        return mapper.model_to_entity(model)

    async def link_external_id(self, user_id: int, external_id: str) -> User:
        stmt = (
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(external_id=external_id)
            .returning(UserModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())
