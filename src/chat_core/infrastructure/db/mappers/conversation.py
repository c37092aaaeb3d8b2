from __future__ import annotations

from chat_core.domain.entities.conversation import Conversation
from chat_core.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        is_group=model.is_group,
        group_name=model.group_name,
        direct_key=model.direct_key,
        last_message_id=model.last_message_id,
        last_message_at=model.last_message_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_values(entity: Conversation) -> dict:
    return {
        "id": entity.id,
        "is_group": entity.is_group,
        "group_name": entity.group_name,
        "direct_key": entity.direct_key,
        "last_message_id": entity.last_message_id,
        "last_message_at": entity.last_message_at,
        "created_at": entity.created_at,
        "updated_at": entity.updated_at,
    }
