from __future__ import annotations

import uuid
from datetime import datetime, timezone

from chat_core.application.dto.conversation import (
    ConversationSummary,
    MessagePreview,
    ParticipantInfo,
)
from chat_core.application.exceptions import UserNotFoundError, ValidationError
from chat_core.application.policies.permissions import assert_participant
from chat_core.application.uow import UnitOfWork
from chat_core.domain.entities.conversation import Conversation
from chat_core.domain.entities.participant import Participant
from chat_core.domain.value_objects.ids import direct_key

GROUP_NAME_MAX_LENGTH = 100


async def find_or_create_direct(
    user_id: int,
    other_user_id: int,
    uow: UnitOfWork,
) -> tuple[Conversation, bool]:
    """Return the direct conversation of the unordered pair, creating it once.

    Returns (conversation, created).
    """
    if user_id == other_user_id:
        raise ValidationError("Cannot start a conversation with yourself")

    key = direct_key(user_id, other_user_id)
    existing = await uow.conversations.get_by_direct_key(key)
    if existing is not None:
        return existing, False

    await _ensure_users_exist([user_id, other_user_id], uow)

    now = datetime.now(timezone.utc)
    conversation = Conversation(
        id=uuid.uuid4(),
        is_group=False,
        group_name=None,
        direct_key=key,
        last_message_id=None,
        last_message_at=None,
        created_at=now,
        updated_at=now,
    )
    conversation, created = await uow.conversations_w.create_direct_if_absent(conversation)
    if not created:
        return conversation, False

    await uow.participants_w.add_many(
        _participants(conversation.id, [user_id, other_user_id], now)
    )
    await uow.commit()
    return conversation, True


async def create_group(
    creator_id: int,
    participant_ids: list[int],
    group_name: str,
    uow: UnitOfWork,
) -> Conversation:
    name = (group_name or "").strip()
    if not name or len(name) > GROUP_NAME_MAX_LENGTH:
        raise ValidationError(
            f"Group name is required and must not exceed {GROUP_NAME_MAX_LENGTH} characters"
        )

    members = list(dict.fromkeys([creator_id, *participant_ids]))
    if len(members) < 3:
        raise ValidationError("A group needs at least three distinct participants")

    await _ensure_users_exist(members, uow)

    now = datetime.now(timezone.utc)
    conversation = await uow.conversations_w.create(
        Conversation(
            id=uuid.uuid4(),
            is_group=True,
            group_name=name,
            direct_key=None,
            last_message_id=None,
            last_message_at=None,
            created_at=now,
            updated_at=now,
        )
    )
    await uow.participants_w.add_many(_participants(conversation.id, members, now))
    await uow.commit()
    return conversation


async def list_for_user(user_id: int, uow: UnitOfWork) -> list[ConversationSummary]:
    conversations = await uow.conversations.list_for_user(user_id)
    return await build_summaries(conversations, uow)


async def get_summary(
    conversation_id: uuid.UUID,
    requester_id: int,
    uow: UnitOfWork,
) -> ConversationSummary:
    conversation = await uow.conversations.get_by_id(conversation_id)
    conversation = await assert_participant(requester_id, conversation, uow.participants)
    summaries = await build_summaries([conversation], uow)
    return summaries[0]


async def build_summaries(
    conversations: list[Conversation],
    uow: UnitOfWork,
) -> list[ConversationSummary]:
    """Attach participant profiles, presence and last-message previews, keeping input order."""
    if not conversations:
        return []

    members = await uow.participants.list_for_conversations([c.id for c in conversations])
    user_ids = sorted({p.user_id for group in members.values() for p in group})
    users = await uow.users.get_many(user_ids)
    presence = await uow.presence.get_many(user_ids)
    last_messages = await uow.messages.get_many(
        [c.last_message_id for c in conversations if c.last_message_id is not None]
    )

    summaries: list[ConversationSummary] = []
    for conv in conversations:
        participants = []
        for p in members.get(conv.id, []):
            user = users.get(p.user_id)
            state = presence.get(p.user_id)
            participants.append(
                ParticipantInfo(
                    user_id=p.user_id,
                    display_name=user.display_name if user else "",
                    avatar_url=user.avatar_url if user else None,
                    is_online=bool(state and state.is_online),
                )
            )
        last = last_messages.get(conv.last_message_id) if conv.last_message_id else None
        preview = None
        if last is not None:
            preview = MessagePreview(
                id=last.id,
                sender_id=last.sender_id,
                content=last.content,
                type=last.type,
                created_at=last.created_at,
            )
        summaries.append(
            ConversationSummary(
                id=conv.id,
                is_group=conv.is_group,
                group_name=conv.group_name,
                participants=tuple(participants),
                last_message=preview,
                last_message_at=conv.last_message_at,
                created_at=conv.created_at,
            )
        )
    return summaries


def _participants(
    conversation_id: uuid.UUID,
    user_ids: list[int],
    joined_at: datetime,
) -> list[Participant]:
    return [
        Participant(
            conversation_id=conversation_id,
            user_id=uid,
            position=position,
            joined_at=joined_at,
        )
        for position, uid in enumerate(user_ids)
    ]


async def _ensure_users_exist(user_ids: list[int], uow: UnitOfWork) -> None:
    found = await uow.users.get_many(user_ids)
    missing = [uid for uid in user_ids if uid not in found]
    if missing:
        raise UserNotFoundError(f"Unknown user(s): {', '.join(map(str, missing))}")
