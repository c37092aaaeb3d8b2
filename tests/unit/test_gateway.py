from __future__ import annotations

import asyncio
import json
import uuid

import pytest

from chat_core.application.dto.principal import Principal
from chat_core.application.exceptions import AuthenticationError, StoreUnavailableError
from chat_core.domain.entities.presence import Presence
from chat_core.domain.value_objects.enums import MessageType
from chat_core.infrastructure.ws.connection import Connection
from chat_core.infrastructure.ws.gateway import RealtimeGateway
from chat_core.infrastructure.ws.presence import PresenceTracker
from chat_core.infrastructure.ws.registry import SessionRegistry
from chat_core.services import conversation_service, message_service
from tests.conftest import (
    FakeStore,
    FakeTransport,
    FakeUoW,
    FakeVerifier,
    StepClock,
    fake_uow_factory,
)


def frame(event_type: str, **data) -> str:
    return json.dumps({"type": event_type, "data": data})


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def gateway(store: FakeStore, verifier: FakeVerifier) -> RealtimeGateway:
    registry = SessionRegistry()
    factory = fake_uow_factory(store)
    return RealtimeGateway(
        registry=registry,
        presence=PresenceTracker(registry, factory, clock=StepClock()),
        uow_factory=factory,
        verifier=verifier,
    )


async def connect(gateway: RealtimeGateway, user_id: int, *, fail: bool = False):
    transport = FakeTransport(fail=fail)
    conn = Connection(transport)
    await gateway.connect(conn, Principal(user_id=user_id))
    return conn, transport


@pytest.fixture
def pair(store: FakeStore):
    a, b = store.add_user("A"), store.add_user("B")
    return a, b, store.add_conversation([a.id, b.id])


@pytest.mark.asyncio
async def test_message_reaches_every_participant_once(gateway, pair):
    a, b, conv = pair
    conn_a, ta = await connect(gateway, a.id)
    _, tb = await connect(gateway, b.id)

    await gateway.handle_frame(conn_a, frame("sendMessage", conversationId=str(conv.id), content="hi"))

    for transport in (ta, tb):
        [event] = transport.of_type("newMessage")
        assert event["data"]["content"] == "hi"
        assert event["data"]["senderId"] == a.id
        assert event["data"]["conversationId"] == str(conv.id)
        assert event["data"]["messageType"] == "text"
        [updated] = transport.of_type("conversationUpdated")
        assert updated["data"]["lastMessage"]["content"] == "hi"
    assert ta.of_type("error") == []


@pytest.mark.asyncio
async def test_every_device_of_a_user_gets_one_copy(gateway, pair):
    a, b, conv = pair
    _, phone = await connect(gateway, a.id)
    _, laptop = await connect(gateway, a.id)
    conn_b, tb = await connect(gateway, b.id)

    await gateway.handle_frame(conn_b, frame("sendMessage", conversationId=str(conv.id), content="yo"))

    assert len(phone.of_type("newMessage")) == 1
    assert len(laptop.of_type("newMessage")) == 1
    assert len(tb.of_type("newMessage")) == 1


@pytest.mark.asyncio
async def test_fan_out_ignores_room_membership(gateway, pair):
    a, b, conv = pair
    conn_a, _ = await connect(gateway, a.id)
    conn_b, tb = await connect(gateway, b.id)
    await gateway.handle_frame(conn_b, frame("leaveConversation", conversationId=str(conv.id)))

    await gateway.handle_frame(conn_a, frame("sendMessage", conversationId=str(conv.id), content="x"))

    assert conv.id not in conn_b.rooms
    assert len(tb.of_type("newMessage")) == 1


@pytest.mark.asyncio
async def test_dead_connection_does_not_block_others(gateway, pair):
    a, b, conv = pair
    conn_a, ta = await connect(gateway, a.id)
    await connect(gateway, b.id, fail=True)
    _, tb_ok = await connect(gateway, b.id)

    await gateway.handle_frame(conn_a, frame("sendMessage", conversationId=str(conv.id), content="x"))

    assert len(ta.of_type("newMessage")) == 1
    assert len(tb_ok.of_type("newMessage")) == 1


@pytest.mark.asyncio
async def test_errors_go_to_sender_only(gateway, pair, store: FakeStore):
    a, b, conv = pair
    outsider = store.add_user("M")
    _, ta = await connect(gateway, a.id)
    _, tb = await connect(gateway, b.id)
    conn_m, tm = await connect(gateway, outsider.id)

    await gateway.handle_frame(conn_m, frame("sendMessage", conversationId=str(conv.id), content="hey"))

    [error] = tm.of_type("error")
    assert error["data"]["code"] == "not_participant"
    assert ta.of_type("newMessage") == tb.of_type("newMessage") == []
    assert store.messages == {}


@pytest.mark.asyncio
async def test_malformed_frames_are_reported(gateway, pair):
    a, _b, _conv = pair
    conn, transport = await connect(gateway, a.id)

    await gateway.handle_frame(conn, "not json")
    await gateway.handle_frame(conn, frame("explode"))
    await gateway.handle_frame(conn, frame("sendMessage", content="no conversation"))

    codes = [e["data"]["code"] for e in transport.of_type("error")]
    assert codes == ["invalid_payload", "unknown_type", "invalid_payload"]


@pytest.mark.asyncio
async def test_empty_text_is_rejected(gateway, pair):
    a, _b, conv = pair
    conn, transport = await connect(gateway, a.id)

    await gateway.handle_frame(conn, frame("sendMessage", conversationId=str(conv.id), content="  "))

    [error] = transport.of_type("error")
    assert error["data"]["code"] == "invalid_data"


@pytest.mark.asyncio
async def test_typing_goes_to_other_participants(gateway, pair, store: FakeStore):
    a, b, conv = pair
    conn_a, ta = await connect(gateway, a.id)
    _, tb = await connect(gateway, b.id)
    conn_m, tm = await connect(gateway, store.add_user("M").id)

    await gateway.handle_frame(conn_a, frame("typing", conversationId=str(conv.id), isTyping=True))
    await gateway.handle_frame(conn_m, frame("typing", conversationId=str(conv.id), isTyping=True))

    [typing] = tb.of_type("userTyping")
    assert typing["data"] == {"userId": a.id, "conversationId": str(conv.id), "isTyping": True}
    assert ta.of_type("userTyping") == []
    assert tm.of_type("error") == []


@pytest.mark.asyncio
async def test_read_receipt_is_broadcast_once(gateway, pair):
    a, b, conv = pair
    conn_a, ta = await connect(gateway, a.id)
    conn_b, tb = await connect(gateway, b.id)
    await gateway.handle_frame(conn_a, frame("sendMessage", conversationId=str(conv.id), content="x"))
    message_id = ta.of_type("newMessage")[0]["data"]["id"]

    read = frame("markAsRead", messageId=message_id, conversationId=str(conv.id))
    await gateway.handle_frame(conn_b, read)
    await gateway.handle_frame(conn_b, read)

    [receipt] = ta.of_type("messageRead")
    assert receipt["data"]["userId"] == b.id
    assert receipt["data"]["messageId"] == message_id
    assert tb.of_type("messageRead") == []


@pytest.mark.asyncio
async def test_presence_is_broadcast_to_other_online_users(gateway, pair, store: FakeStore):
    a, b, _conv = pair
    _, ta = await connect(gateway, a.id)
    conn_b1, tb = await connect(gateway, b.id)
    conn_b2, _ = await connect(gateway, b.id)

    [online] = ta.of_type("userOnline")
    assert online["data"]["userId"] == b.id
    assert tb.of_type("userOnline") == []

    await gateway.disconnect(conn_b1)
    assert ta.of_type("userOffline") == []

    await gateway.disconnect(conn_b2)
    [offline] = ta.of_type("userOffline")
    assert offline["data"]["userId"] == b.id
    assert offline["data"]["lastSeenAt"] is not None
    assert store.presence[b.id].is_online is False


@pytest.mark.asyncio
async def test_connect_auto_joins_conversations(gateway, pair):
    a, _b, conv = pair
    conn, _ = await connect(gateway, a.id)
    assert conn.rooms == {conv.id}
    assert conn.user_id == a.id


@pytest.mark.asyncio
async def test_join_is_local_and_never_fails(store: FakeStore):
    registry = SessionRegistry()
    factory = fake_uow_factory(store)
    opened: list[int] = []

    def counting_factory():
        opened.append(1)
        return factory()

    gateway = RealtimeGateway(
        registry=registry,
        presence=PresenceTracker(registry, factory, clock=StepClock()),
        uow_factory=counting_factory,
        verifier=FakeVerifier(),
    )
    conn, transport = await connect(gateway, store.add_user("M").id)
    opened.clear()
    unknown = uuid.uuid4()

    await gateway.handle_frame(conn, frame("joinConversation", conversationId=str(unknown)))
    await gateway.handle_frame(conn, frame("joinConversation", conversationId=str(unknown)))

    assert conn.rooms == {unknown}
    assert transport.of_type("error") == []
    assert opened == []

    await gateway.handle_frame(conn, frame("leaveConversation", conversationId=str(unknown)))
    assert conn.rooms == set()


@pytest.mark.asyncio
async def test_ping_gets_pong(gateway, pair):
    a, _b, _conv = pair
    conn, transport = await connect(gateway, a.id)
    await gateway.handle_frame(conn, frame("ping"))
    assert len(transport.of_type("pong")) == 1


@pytest.mark.asyncio
async def test_authenticate_requires_known_user(gateway, verifier, store: FakeStore):
    user = store.add_user()
    verifier.tokens.update({"good": user.id, "ghost": 999})

    assert (await gateway.authenticate("good")).user_id == user.id
    with pytest.raises(AuthenticationError):
        await gateway.authenticate("ghost")
    with pytest.raises(AuthenticationError):
        await gateway.authenticate("forged")
    assert len(gateway.registry) == 0


@pytest.mark.asyncio
async def test_shutdown_closes_connections(gateway, pair):
    a, b, _conv = pair
    _, ta = await connect(gateway, a.id)
    _, tb = await connect(gateway, b.id)

    await gateway.shutdown()

    assert ta.closed_with == tb.closed_with == 1001
    assert len(gateway.registry) == 0


@pytest.mark.asyncio
async def test_new_conversation_is_joined_once_then_left_alone(gateway, store: FakeStore):
    a, b = store.add_user("A"), store.add_user("B")
    conn_a, _ = await connect(gateway, a.id)
    conn_b, tb = await connect(gateway, b.id)
    uow = FakeUoW(store)

    conv, msg, created = await message_service.send_direct_message(
        a.id, b.id, "first", MessageType.TEXT, None, uow,
    )
    summary = await conversation_service.get_summary(conv.id, a.id, uow)
    await gateway.publish_message(msg, summary, created=created)
    assert conv.id in conn_a.rooms
    assert conv.id in conn_b.rooms

    await gateway.handle_frame(conn_b, frame("leaveConversation", conversationId=str(conv.id)))
    await gateway.handle_frame(conn_a, frame("sendMessage", conversationId=str(conv.id), content="second"))

    assert conv.id not in conn_b.rooms
    assert [e["data"]["content"] for e in tb.of_type("newMessage")] == ["first", "second"]


class FlakyPresenceTracker(PresenceTracker):
    """Blocks the first write until released, then fails it."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.failures = 0
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def _persist(self, presence: Presence) -> None:
        if self.failures:
            self.failures -= 1
            self.started.set()
            await self.release.wait()
            raise StoreUnavailableError()
        await super()._persist(presence)


@pytest.mark.asyncio
async def test_second_device_recovers_failed_online_transition(store: FakeStore):
    registry = SessionRegistry()
    factory = fake_uow_factory(store)
    presence = FlakyPresenceTracker(registry, factory, clock=StepClock())
    gateway = RealtimeGateway(
        registry=registry, presence=presence, uow_factory=factory, verifier=FakeVerifier(),
    )
    watcher, user = store.add_user("W"), store.add_user("U")
    _, tw = await connect(gateway, watcher.id)
    presence.failures = 1

    first = asyncio.create_task(connect(gateway, user.id))
    await presence.started.wait()
    second = asyncio.create_task(connect(gateway, user.id))
    while len(registry.handles_for(user.id)) < 2:
        await asyncio.sleep(0)
    presence.release.set()

    with pytest.raises(StoreUnavailableError):
        await first
    conn, _ = await second

    assert registry.handles_for(user.id) == {conn}
    assert presence.is_announced_online(user.id)
    assert store.presence[user.id].is_online is True
    assert [e["data"]["userId"] for e in tw.of_type("userOnline")] == [user.id]

    await gateway.disconnect(conn)
    assert [e["data"]["userId"] for e in tw.of_type("userOffline")] == [user.id]


@pytest.mark.asyncio
async def test_call_is_relayed_to_other_participants(gateway, pair, store: FakeStore):
    a, b, conv = pair
    conn_a, ta = await connect(gateway, a.id)
    conn_b, tb = await connect(gateway, b.id)
    conn_m, tm = await connect(gateway, store.add_user("M").id)

    await gateway.handle_frame(
        conn_a,
        frame("initiateCall", conversationId=str(conv.id), callType="audio", callData={"sdp": "offer"}),
    )
    await gateway.handle_frame(
        conn_b,
        frame("callResponse", conversationId=str(conv.id), accepted=True, callData={"sdp": "answer"}),
    )
    await gateway.handle_frame(conn_m, frame("initiateCall", conversationId=str(conv.id)))

    [incoming] = tb.of_type("incomingCall")
    assert incoming["data"] == {
        "fromUserId": a.id,
        "fromName": "A",
        "conversationId": str(conv.id),
        "callType": "audio",
        "callData": {"sdp": "offer"},
    }
    [answer] = ta.of_type("callResponse")
    assert answer["data"]["fromUserId"] == b.id
    assert answer["data"]["accepted"] is True
    assert answer["data"]["callData"] == {"sdp": "answer"}
    assert ta.of_type("incomingCall") == tb.of_type("callResponse") == []
    assert tm.of_type("error")[0]["data"]["code"] == "not_participant"
