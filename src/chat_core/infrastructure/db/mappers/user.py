from __future__ import annotations

from chat_core.domain.entities.user import User
from chat_core.infrastructure.db.models.user import UserModel


def model_to_entity(model: UserModel) -> User:
    return User(
        id=model.id,
        display_name=model.display_name,
        avatar_url=model.avatar_url,
        email=model.email,
        external_id=model.external_id,
        mobile=model.mobile,
        created_at=model.created_at,
    )
