from __future__ import annotations

import pytest

from tests.conftest import make_harness, new_message_payload

ONLINE_U1 = {"type": "user_presence", "userId": "u1", "isOnline": True}
OFFLINE_U1 = {"type": "user_presence", "userId": "u1", "isOnline": False}


@pytest.mark.asyncio
async def test_typing_update_reaches_conversation_peers_only(harness):
    a = await harness.open("a", "u1", "c1")
    b = await harness.open("b", "u2", "c1")
    elsewhere = await harness.open("c", "u3", "c2")
    for conn in (a, b, elsewhere):
        conn.sent.clear()

    await harness.send(a, {"type": "typing_update", "conversationId": "c1"})

    assert b.received == [{"type": "typing_update", "conversationId": "c1", "userId": "u1"}]
    assert a.sent == []
    assert elsewhere.sent == []


@pytest.mark.asyncio
async def test_new_message_fans_out_to_two_audiences(harness):
    a = await harness.open("a", "u1", "c1")
    b = await harness.open("b", "u2", "c1")
    c = await harness.open("c", "u3", "c2")
    for conn in (a, b, c):
        conn.sent.clear()

    await harness.send(a, new_message_payload())

    assert harness.store.recipients() == ["u2"]
    assert [act.user_id for act in harness.store.activities] == ["u1"]

    assert a.sent == []
    assert b.types() == ["new_notification", "new_message", "new_message"]
    notification, relay, passthrough = b.received
    assert notification["notification"]["user_id"] == "u2"
    assert notification["notification"]["title"] == "New message from alice"
    assert relay == {
        "type": "new_message",
        "senderName": "alice",
        "content": "hi",
        "conversationId": "c1",
        "messageId": "m1",
    }
    assert passthrough["message"]["id"] == "m1"
    assert passthrough["userId"] == "u1"

    # online but viewing another conversation: notification only
    assert c.types() == ["new_notification"]
    assert c.received[0]["notification"]["user_id"] == "u3"


@pytest.mark.asyncio
async def test_new_message_still_relays_when_directory_is_down(harness):
    harness.directory.fail = True
    a = await harness.open("a", "u1", "c1")
    b = await harness.open("b", "u2", "c1")
    b.sent.clear()

    await harness.send(a, new_message_payload())

    assert harness.store.notifications == []
    assert harness.store.activities == []
    assert b.types() == ["new_notification", "new_message", "new_message"]


@pytest.mark.asyncio
async def test_presence_on_connect_and_disconnect(harness):
    b = await harness.open("b", "u2", "c1")
    a = await harness.open("a", "u1", "c1")

    await harness.router.disconnect(a)

    assert b.received == [ONLINE_U1, OFFLINE_U1]
    assert a.sent == []
    assert a not in harness.registry
    assert harness.presence.members_of("c1") == {"u2"}


@pytest.mark.asyncio
async def test_presence_reaches_every_other_conversation(harness):
    b = await harness.open("b", "u2", "c9")
    anonymous = await harness.open("anon")
    await harness.open("a", "u1", "c1")

    assert b.received == [ONLINE_U1]
    assert anonymous.received == [ONLINE_U1]


@pytest.mark.asyncio
async def test_anonymous_connection_announces_nothing(harness):
    b = await harness.open("b", "u2", "c1")
    anon = await harness.open("anon")

    await harness.router.disconnect(anon)

    assert b.sent == []


@pytest.mark.asyncio
async def test_disconnect_is_idempotent(harness):
    b = await harness.open("b", "u2")
    a = await harness.open("a", "u1")
    b.sent.clear()

    await harness.router.disconnect(a)
    await harness.router.disconnect(a)

    assert b.received == [OFFLINE_U1]


@pytest.mark.asyncio
async def test_follow_delivers_directly_to_followed_user(harness):
    a = await harness.open("a", "u1", "c1")
    b = await harness.open("b", "u2", "c7")
    bystander = await harness.open("c", "u3", "c1")
    for conn in (a, b, bystander):
        conn.sent.clear()

    await harness.send(
        a,
        {"type": "follow", "action": "follow", "followedId": "u2", "followerId": "u1", "followerName": "Alice"},
    )

    assert harness.store.recipients() == ["u2"]
    assert harness.store.notifications[0].type == "follow"
    assert b.types() == ["new_notification", "follow_notification"]
    legacy = b.received[1]
    assert legacy["followerId"] == "u1"
    assert legacy["followedId"] == "u2"
    assert legacy["followerName"] == "Alice"
    assert legacy["action"] == "follow"
    assert legacy["timestamp"].startswith("2024-05-01T12:00:00")
    assert a.sent == []
    assert bystander.sent == []


@pytest.mark.asyncio
async def test_follow_keeps_client_timestamp(harness):
    a = await harness.open("a", "u1")
    b = await harness.open("b", "u2")
    b.sent.clear()

    await harness.send(
        a,
        {"type": "follow", "action": "follow", "followedId": "u2", "followerId": "u1", "timestamp": "yesterday"},
    )

    assert b.received[1]["timestamp"] == "yesterday"


@pytest.mark.asyncio
async def test_follow_for_offline_user_only_persists(harness):
    a = await harness.open("a", "u1")

    await harness.send(
        a, {"type": "follow", "action": "follow", "followedId": "u2", "followerId": "u1"},
    )

    assert harness.store.recipients() == ["u2"]
    assert a.sent == []


@pytest.mark.asyncio
@pytest.mark.parametrize("action", ["unfollow", "Follow", "", "block"])
async def test_non_follow_actions_are_ignored(harness, action):
    a = await harness.open("a", "u1")
    b = await harness.open("b", "u2")
    for conn in (a, b):
        conn.sent.clear()

    await harness.send(
        a, {"type": "follow", "action": action, "followedId": "u2", "followerId": "u1"},
    )

    assert harness.store.notifications == []
    assert a.sent == [] and b.sent == []


@pytest.mark.asyncio
async def test_user_presence_and_unknown_types_go_to_everyone_else(harness):
    a = await harness.open("a", "u1", "c1")
    b = await harness.open("b", "u2", "c2")
    for conn in (a, b):
        conn.sent.clear()

    await harness.send(a, {"type": "user_presence", "userId": "u1", "isOnline": False})
    await harness.send(a, {"type": "reaction", "emoji": "+1"})

    assert b.received == [
        {"type": "user_presence", "userId": "u1", "isOnline": False},
        {"type": "reaction", "emoji": "+1", "userId": "u1"},
    ]
    assert a.sent == []


@pytest.mark.asyncio
async def test_malformed_payload_is_dropped_without_closing(harness):
    a = await harness.open("a", "u1", "c1")
    b = await harness.open("b", "u2", "c1")
    b.sent.clear()

    await harness.router.handle(a, "{not json")
    await harness.router.handle(a, '{"no_type": true}')

    assert b.sent == []
    assert a in harness.registry


@pytest.mark.asyncio
async def test_broken_peer_does_not_block_new_message_delivery():
    harness = make_harness({"c1": ["u1", "u2", "u3"]})
    a = await harness.open("a", "u1", "c1")
    broken = await harness.open("broken", "u2", "c1")
    c = await harness.open("c", "u3", "c1")
    broken.fail = True
    c.sent.clear()

    await harness.send(a, new_message_payload())

    assert c.types() == ["new_notification", "new_message", "new_message"]
    assert sorted(harness.store.recipients()) == ["u2", "u3"]


@pytest.mark.asyncio
async def test_presence_without_online_flag_is_passed_through(harness):
    a = await harness.open("a", "u1", "c1")
    b = await harness.open("b", "u2", "c2")
    for conn in (a, b):
        conn.sent.clear()

    await harness.send(a, {"type": "user_presence"})

    assert b.received == [{"type": "user_presence", "userId": "u1"}]


@pytest.mark.asyncio
async def test_deeply_nested_frame_is_dropped_without_closing(harness):
    a = await harness.open("a", "u1", "c1")
    b = await harness.open("b", "u2", "c1")
    b.sent.clear()

    await harness.router.handle(a, "[" * 200000)

    assert a in harness.registry
    assert b.sent == []
