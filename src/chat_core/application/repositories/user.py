from __future__ import annotations

from typing import Protocol

from chat_core.domain.entities.user import User


class UserReader(Protocol):
    async def get_by_id(self, user_id: int) -> User | None: ...

    async def get_many(self, user_ids: list[int]) -> dict[int, User]: ...

    async def get_by_external_id(self, external_id: str) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...


class UserWriter(Protocol):
    async def create(
        self,
        *,
        display_name: str,
        email: str | None,
        external_id: str | None,
        avatar_url: str | None,
        mobile: str | None = None,
    ) -> User: ...

    async def link_external_id(self, user_id: int, external_id: str) -> User: ...
