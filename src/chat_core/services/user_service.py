from __future__ import annotations

import logging

from chat_core.application.dto.identity import ExternalIdentity
from chat_core.application.exceptions import UserNotFoundError
from chat_core.application.uow import UnitOfWork
from chat_core.domain.entities.presence import Presence
from chat_core.domain.entities.user import User

logger = logging.getLogger(__name__)


async def resolve_external_identity(identity: ExternalIdentity, uow: UnitOfWork) -> User:
    """Map a verified OAuth identity onto a local user, creating it on first sight.

    Accounts created this way have no mobile number; the field stays empty
    rather than holding a placeholder.
    """
    user = await uow.users.get_by_external_id(identity.external_id)
    if user is not None:
        return user

    if identity.email:
        user = await uow.users.get_by_email(identity.email)
        if user is not None:
            user = await uow.users_w.link_external_id(user.id, identity.external_id)
            await uow.commit()
            logger.info("Linked external identity to user %s", user.id)
            return user

    user = await uow.users_w.create(
        display_name=identity.name,
        email=identity.email,
        external_id=identity.external_id,
        avatar_url=identity.avatar_url,
        mobile=None,
    )
    await uow.commit()
    logger.info("Created user %s from external identity", user.id)
    return user


async def get_user(user_id: int, uow: UnitOfWork) -> User:
    user = await uow.users.get_by_id(user_id)
    if user is None:
        raise UserNotFoundError()
    return user


async def get_presence(user_id: int, uow: UnitOfWork) -> Presence:
    await get_user(user_id, uow)
    presence = await uow.presence.get(user_id)
    if presence is None:
        return Presence(user_id=user_id, is_online=False, last_seen_at=None)
    return presence


async def list_online_users(
    online_ids: list[int],
    requester_id: int,
    uow: UnitOfWork,
) -> list[User]:
    """Users with a live connection, excluding the requester, ordered by name."""
    others = [uid for uid in online_ids if uid != requester_id]
    users = await uow.users.get_many(others)
    return sorted(users.values(), key=lambda u: (u.display_name.casefold(), u.id))
