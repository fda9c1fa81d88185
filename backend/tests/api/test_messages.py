import pytest

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}


async def _send(api_client, headers, **payload):
    response = await api_client.post("/messages", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_one_to_one_history_is_ascending(api_client):
    first = await _send(api_client, ALICE, content="one", chatType="one-to-one", recipient="bob")
    second = await _send(api_client, BOB, content="two", chatType="one-to-one", recipient="alice")
    third = await _send(api_client, ALICE, content="three", chatType="one-to-one", recipient="bob")
    await _send(api_client, ALICE, content="elsewhere", chatType="one-to-one", recipient="carol")

    response = await api_client.get("/messages/one-to-one/bob", headers=ALICE)

    assert response.status_code == 200
    assert [m["id"] for m in response.json()] == [first["id"], second["id"], third["id"]]
    assert response.json()[0]["senderId"] == "alice"


@pytest.mark.asyncio
async def test_unread_count_drops_after_marking_read(api_client):
    sent = [
        await _send(api_client, BOB, content=f"ping {i}", chatType="one-to-one", recipient="alice")
        for i in range(3)
    ]

    chats = (await api_client.get("/messages/chats", headers=ALICE)).json()
    assert len(chats) == 1
    assert chats[0]["chatId"] == "bob"
    assert chats[0]["type"] == "one-to-one"
    assert chats[0]["unreadCount"] == 3
    assert chats[0]["lastMessage"]["id"] == sent[-1]["id"]

    marked = await api_client.post("/messages/read", json={"messageIds": [sent[0]["id"]]}, headers=ALICE)
    assert marked.status_code == 200
    assert marked.json() == {"messageIds": [sent[0]["id"]]}

    chats = (await api_client.get("/messages/chats", headers=ALICE)).json()
    assert chats[0]["unreadCount"] == 2

    # The sender's own view never counts their messages as unread.
    bob_chats = (await api_client.get("/messages/chats", headers=BOB)).json()
    assert bob_chats[0]["unreadCount"] == 0


@pytest.mark.asyncio
async def test_send_validation_errors(api_client):
    blank = await api_client.post(
        "/messages", json={"content": "   ", "chatType": "one-to-one", "recipient": "bob"}, headers=ALICE
    )
    assert blank.status_code == 400
    assert blank.json()["detail"] == "empty_content"

    no_target = await api_client.post("/messages", json={"content": "hi", "chatType": "group"}, headers=ALICE)
    assert no_target.status_code == 400

    spoofed = await api_client.post(
        "/messages",
        json={"sender": "bob", "content": "hi", "chatType": "one-to-one", "recipient": "carol"},
        headers=ALICE,
    )
    assert spoofed.status_code == 403


@pytest.mark.asyncio
async def test_send_rate_limit_returns_429(api_client):
    from huddle.settings import settings

    settings.send_rate_limit_per_minute = 2
    for _ in range(2):
        await _send(api_client, ALICE, content="hi", chatType="one-to-one", recipient="bob")
    limited = await api_client.post(
        "/messages", json={"content": "hi", "chatType": "one-to-one", "recipient": "bob"}, headers=ALICE
    )
    assert limited.status_code == 429
    assert limited.json()["detail"] == "rate_limited"


@pytest.mark.asyncio
async def test_group_chat_membership_and_previews(api_client):
    created = await api_client.post(
        "/events",
        json={"title": "Chess night", "capacity": 4, "accessMode": "verification_required"},
        headers=ALICE,
    )
    event_id = created.json()["id"]
    await api_client.post(f"/events/{event_id}/join", headers=BOB)

    pending_send = await api_client.post(
        "/messages", json={"content": "let me in", "chatType": "group", "eventId": event_id}, headers=BOB
    )
    assert pending_send.status_code == 403
    assert (await api_client.get(f"/messages/group/{event_id}", headers=BOB)).status_code == 403

    await api_client.post(f"/events/{event_id}/accept-request", json={"userId": "bob"}, headers=ALICE)
    await _send(api_client, ALICE, content="welcome", chatType="group", eventId=event_id)
    await _send(api_client, BOB, content="thanks", chatType="group", eventId=event_id)

    history = await api_client.get(f"/messages/group/{event_id}", headers=BOB)
    assert [m["content"] for m in history.json()] == ["welcome", "thanks"]

    chats = (await api_client.get("/messages/chats", headers=BOB)).json()
    assert chats == [
        {
            "chatId": event_id,
            "type": "group",
            "displayName": "Chess night",
            "lastMessage": chats[0]["lastMessage"],
            "unreadCount": 1,
        }
    ]
    assert chats[0]["lastMessage"]["content"] == "thanks"

    assert (await api_client.get("/messages/group/missing", headers=BOB)).status_code == 404
