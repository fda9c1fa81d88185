from unittest.mock import AsyncMock, MagicMock

import pytest

from huddle.live.client import LiveClient
from huddle.live.envelope import ServerKind


def test_default_reconnect_policy_is_fixed_delay():
    client = LiveClient("http://localhost:8000", user_id="alice")
    sio = client._sio
    assert sio.reconnection_attempts == 5
    assert sio.reconnection_delay == 3
    assert sio.reconnection_delay_max == 3
    assert sio.randomization_factor == 0


@pytest.mark.asyncio
async def test_send_message_builds_envelope():
    sio = MagicMock()
    sio.emit = AsyncMock()
    client = LiveClient("http://localhost:8000", user_id="alice", client=sio)

    await client.send_message("hey", event_id="evt-1")

    event, data = sio.emit.await_args.args
    assert event == "message"
    assert data == {
        "type": "sendMessage",
        "payload": {"sender": "alice", "content": "hey", "chatType": "group", "eventId": "evt-1"},
    }
    assert sio.emit.await_args.kwargs["namespace"] == "/live"


@pytest.mark.asyncio
async def test_connect_rejoins_and_dispatches_by_type():
    sio = MagicMock()
    sio.emit = AsyncMock()
    client = LiveClient("http://localhost:8000", user_id="alice", client=sio)
    received = []

    async def on_new(payload):
        received.append(payload)

    client.on(ServerKind.NEW_MESSAGE, on_new)
    await client._on_connect()
    await client._dispatch({"type": "newMessage", "payload": {"id": "m1"}})
    await client._dispatch({"type": "error", "payload": {"message": "x"}})

    assert sio.emit.await_args.args[1] == {"type": "join", "payload": {"userId": "alice"}}
    assert received == [{"id": "m1"}]
