"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
import json
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator
from uuid import UUID

import jwt
import pytest

from chat_core.application.dto.principal import Principal
from chat_core.application.exceptions import AuthenticationError
from chat_core.application.ports.media import StoredMedia
from chat_core.config import settings
from chat_core.domain.entities.conversation import Conversation
from chat_core.domain.entities.message import Message, ReadReceipt
from chat_core.domain.entities.participant import Participant
from chat_core.domain.entities.presence import Presence
from chat_core.domain.entities.user import User
from chat_core.domain.value_objects.enums import MessageType
from chat_core.domain.value_objects.ids import direct_key


@dataclass
class FakeStore:
    """State shared by every FakeUoW opened over it, like one database."""

    conversations: dict[UUID, Conversation] = field(default_factory=dict)
    participants: list[Participant] = field(default_factory=list)
    messages: dict[UUID, Message] = field(default_factory=dict)
    reads: dict[UUID, list[ReadReceipt]] = field(default_factory=dict)
    users: dict[int, User] = field(default_factory=dict)
    presence: dict[int, Presence] = field(default_factory=dict)
    commits: int = 0
    _seq: Any = field(default_factory=lambda: itertools.count(1))
    _user_ids: Any = field(default_factory=lambda: itertools.count(1))

    def add_user(self, display_name: str = "", *, email: str | None = None) -> User:
        uid = next(self._user_ids)
        user = User(
            id=uid,
            display_name=display_name or f"user-{uid}",
            avatar_url=None,
            email=email,
            external_id=None,
            mobile=None,
            created_at=datetime.now(timezone.utc),
        )
        self.users[uid] = user
        return user

    def add_conversation(
        self,
        member_ids: list[int],
        *,
        is_group: bool = False,
        group_name: str | None = None,
    ) -> Conversation:
        now = datetime.now(timezone.utc)
        conv = make_conversation(
            is_group=is_group,
            group_name=group_name,
            key=None if is_group else direct_key(*member_ids),
            created_at=now,
        )
        self.conversations[conv.id] = conv
        for position, uid in enumerate(member_ids):
            self.participants.append(
                Participant(conversation_id=conv.id, user_id=uid, position=position, joined_at=now)
            )
        return conv

    def message_with_reads(self, msg: Message) -> Message:
        return replace(msg, read_by=tuple(self.reads.get(msg.id, [])))


def make_conversation(
    *,
    conversation_id: UUID | None = None,
    is_group: bool = False,
    group_name: str | None = None,
    key: str | None = None,
    created_at: datetime | None = None,
) -> Conversation:
    now = created_at or datetime.now(timezone.utc)
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        is_group=is_group,
        group_name=group_name,
        direct_key=key,
        last_message_id=None,
        last_message_at=None,
        created_at=now,
        updated_at=now,
    )


def make_message(
    *,
    conversation_id: UUID | None = None,
    sender_id: int = 1,
    content: str = "hello",
    created_at: datetime | None = None,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id or uuid.uuid4(),
        sender_id=sender_id,
        content=content,
        type=MessageType.TEXT,
        attachment=None,
        created_at=created_at or datetime.now(timezone.utc),
    )


# -- repositories ---------------------------------------------------------


@dataclass
class FakeConversationReader:
    _store: FakeStore

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.conversations.get(conversation_id)

    async def get_by_direct_key(self, key: str) -> Conversation | None:
        # Yield so concurrent find-or-create calls interleave here.
        await asyncio.sleep(0)
        for conv in self._store.conversations.values():
            if conv.direct_key == key:
                return conv
        return None

    async def list_for_user(self, user_id: int) -> list[Conversation]:
        ids = {p.conversation_id for p in self._store.participants if p.user_id == user_id}
        convs = [self._store.conversations[cid] for cid in ids]
        never = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(
            convs,
            key=lambda c: (c.last_message_at is not None, c.last_message_at or never),
            reverse=True,
        )


@dataclass
class FakeConversationWriter:
    _store: FakeStore

    async def create(self, conversation: Conversation) -> Conversation:
        self._store.conversations[conversation.id] = conversation
        return conversation

    async def create_direct_if_absent(
        self, conversation: Conversation,
    ) -> tuple[Conversation, bool]:
        for existing in self._store.conversations.values():
            if existing.direct_key == conversation.direct_key:
                return existing, False
        self._store.conversations[conversation.id] = conversation
        return conversation, True

    async def lock(self, conversation_id: UUID) -> Conversation | None:
        return self._store.conversations.get(conversation_id)

    async def set_last_message(
        self,
        conversation_id: UUID,
        message_id: UUID | None,
        ts: datetime | None,
    ) -> None:
        conv = self._store.conversations[conversation_id]
        self._store.conversations[conversation_id] = replace(
            conv, last_message_id=message_id, last_message_at=ts,
        )


@dataclass
class FakeParticipantReader:
    _store: FakeStore

    async def is_participant(self, conversation_id: UUID, user_id: int) -> bool:
        return any(
            p.conversation_id == conversation_id and p.user_id == user_id
            for p in self._store.participants
        )

    async def list_user_ids(self, conversation_id: UUID) -> list[int]:
        members = [p for p in self._store.participants if p.conversation_id == conversation_id]
        return [p.user_id for p in sorted(members, key=lambda p: p.position)]

    async def list_for_conversations(
        self, conversation_ids: list[UUID],
    ) -> dict[UUID, list[Participant]]:
        grouped: dict[UUID, list[Participant]] = {}
        for p in sorted(self._store.participants, key=lambda p: p.position):
            if p.conversation_id in conversation_ids:
                grouped.setdefault(p.conversation_id, []).append(p)
        return grouped

    async def list_conversation_ids(self, user_id: int) -> list[UUID]:
        return [p.conversation_id for p in self._store.participants if p.user_id == user_id]


@dataclass
class FakeParticipantWriter:
    _store: FakeStore

    async def add_many(self, participants: list[Participant]) -> None:
        self._store.participants.extend(participants)


@dataclass
class FakeMessageReader:
    _store: FakeStore

    async def get_by_id(self, message_id: UUID) -> Message | None:
        msg = self._store.messages.get(message_id)
        return self._store.message_with_reads(msg) if msg else None

    async def get_many(self, message_ids: list[UUID]) -> dict[UUID, Message]:
        return {mid: self._store.messages[mid] for mid in message_ids if mid in self._store.messages}

    async def list_newest_first(
        self,
        conversation_id: UUID,
        *,
        offset: int,
        limit: int,
    ) -> list[Message]:
        msgs = [m for m in self._store.messages.values() if m.conversation_id == conversation_id]
        msgs.sort(key=lambda m: m.seq, reverse=True)
        return [self._store.message_with_reads(m) for m in msgs[offset:offset + limit]]

    async def latest(self, conversation_id: UUID) -> Message | None:
        newest = await self.list_newest_first(conversation_id, offset=0, limit=1)
        return newest[0] if newest else None


@dataclass
class FakeMessageWriter:
    _store: FakeStore

    async def create(self, message: Message) -> Message:
        stored = replace(message, seq=next(self._store._seq))
        self._store.messages[stored.id] = stored
        return stored

    async def delete(self, message_id: UUID) -> None:
        self._store.messages.pop(message_id, None)
        self._store.reads.pop(message_id, None)

    async def add_read(self, message_id: UUID, user_id: int, read_at: datetime) -> bool:
        receipts = self._store.reads.setdefault(message_id, [])
        if any(r.user_id == user_id for r in receipts):
            return False
        receipts.append(ReadReceipt(user_id=user_id, read_at=read_at))
        return True


@dataclass
class FakeUserReader:
    _store: FakeStore

    async def get_by_id(self, user_id: int) -> User | None:
        return self._store.users.get(user_id)

    async def get_many(self, user_ids: list[int]) -> dict[int, User]:
        return {uid: self._store.users[uid] for uid in user_ids if uid in self._store.users}

    async def get_by_external_id(self, external_id: str) -> User | None:
        return next((u for u in self._store.users.values() if u.external_id == external_id), None)

    async def get_by_email(self, email: str) -> User | None:
        return next((u for u in self._store.users.values() if u.email == email), None)


@dataclass
class FakeUserWriter:
    _store: FakeStore

    async def create(
        self,
        *,
        display_name: str,
        email: str | None,
        external_id: str | None,
        avatar_url: str | None,
        mobile: str | None = None,
    ) -> User:
        uid = next(self._store._user_ids)
        user = User(
            id=uid,
            display_name=display_name,
            avatar_url=avatar_url,
            email=email,
            external_id=external_id,
            mobile=mobile,
            created_at=datetime.now(timezone.utc),
        )
        self._store.users[uid] = user
        return user

    async def link_external_id(self, user_id: int, external_id: str) -> User:
        user = replace(self._store.users[user_id], external_id=external_id)
        self._store.users[user_id] = user
        return user


@dataclass
class FakePresenceReader:
    _store: FakeStore

    async def get(self, user_id: int) -> Presence | None:
        return self._store.presence.get(user_id)

    async def get_many(self, user_ids: list[int]) -> dict[int, Presence]:
        return {uid: self._store.presence[uid] for uid in user_ids if uid in self._store.presence}


@dataclass
class FakePresenceWriter:
    _store: FakeStore
    upserts: list[Presence] = field(default_factory=list)

    async def upsert(self, presence: Presence) -> None:
        self.upserts.append(presence)
        self._store.presence[presence.user_id] = presence

    async def mark_all_offline(self, last_seen_at: datetime) -> int:
        changed = 0
        for uid, presence in list(self._store.presence.items()):
            if presence.is_online:
                self._store.presence[uid] = Presence(uid, False, last_seen_at)
                changed += 1
        return changed


class FakeUoW:
    """In-memory UoW for unit tests. Writes apply immediately; commits are counted."""

    def __init__(self, store: FakeStore | None = None) -> None:
        self.store = store or FakeStore()
        self.conversations = FakeConversationReader(self.store)
        self.conversations_w = FakeConversationWriter(self.store)
        self.participants = FakeParticipantReader(self.store)
        self.participants_w = FakeParticipantWriter(self.store)
        self.messages = FakeMessageReader(self.store)
        self.messages_w = FakeMessageWriter(self.store)
        self.users = FakeUserReader(self.store)
        self.users_w = FakeUserWriter(self.store)
        self.presence = FakePresenceReader(self.store)
        self.presence_w = FakePresenceWriter(self.store)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self.store.commits += 1

    async def rollback(self) -> None:
        pass


def fake_uow_factory(store: FakeStore):
    @asynccontextmanager
    async def factory() -> AsyncIterator[FakeUoW]:
        yield FakeUoW(store)

    return factory


# -- realtime ---------------------------------------------------------------


class FakeTransport:
    """Stands in for a WebSocket: records frames and close codes."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed_with: int | None = None
        self.fail = fail

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = code

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if frame["type"] == event_type]


class FakeVerifier:
    def __init__(self, tokens: dict[str, int] | None = None) -> None:
        self.tokens = tokens or {}

    async def verify(self, token: str) -> Principal:
        if token not in self.tokens:
            raise AuthenticationError("Invalid token")
        return Principal(user_id=self.tokens[token])


class FakeMediaIngest:
    def __init__(self, *, fail: bool = False) -> None:
        self.uploads: list[tuple[str, str, int]] = []
        self.fail = fail

    async def upload(self, file_name: str, content_type: str, data: bytes) -> StoredMedia:
        if self.fail:
            raise ConnectionError("media host unreachable")
        self.uploads.append((file_name, content_type, len(data)))
        return StoredMedia(url=f"https://media.test/{file_name}")


class StepClock:
    """Deterministic clock: ``advance`` moves both wall and monotonic time."""

    def __init__(self) -> None:
        self._now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._mono = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._mono += seconds


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def uow(store: FakeStore) -> FakeUoW:
    return FakeUoW(store)


# -- http -------------------------------------------------------------------

API = "/api/v1/chat"


def make_token(sub: int) -> str:
    return jwt.encode(
        {"sub": str(sub), "exp": int(time.time()) + 300},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def auth(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}
