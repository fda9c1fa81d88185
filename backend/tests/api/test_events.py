import pytest

CREATOR = {"X-User-Id": "creator-1"}


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}


async def _create_event(api_client, capacity: int, access_mode: str = "open") -> dict:
    response = await api_client.post(
        "/events",
        json={"title": "Sunset run", "capacity": capacity, "accessMode": access_mode},
        headers=CREATOR,
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_and_fetch_event(api_client):
    created = await _create_event(api_client, 3)
    assert created["creatorId"] == "creator-1"
    assert created["accessMode"] == "open"
    assert created["participants"] == []
    assert "X-Request-Id" in (await api_client.get("/health/live")).headers

    fetched = await api_client.get(f"/events/{created['id']}", headers=as_user("someone"))
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Sunset run"


@pytest.mark.asyncio
async def test_create_event_validates_payload(api_client):
    response = await api_client.post("/events", json={"title": "", "capacity": 0}, headers=CREATOR)
    assert response.status_code == 422
    assert response.json()["detail"] == "validation_error"


@pytest.mark.asyncio
async def test_requests_without_identity_are_rejected(api_client):
    response = await api_client.post("/events", json={"title": "x", "capacity": 1})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_verification_event_capacity_scenario(api_client):
    event = await _create_event(api_client, 2, "verification_required")
    event_id = event["id"]

    for user in ("u1", "u2"):
        response = await api_client.post(f"/events/{event_id}/join", headers=as_user(user))
        assert response.status_code == 200
    body = response.json()
    assert body["pendingCount"] == 2
    assert {p["status"] for p in body["participants"]} == {"pending"}

    full = await api_client.post(f"/events/{event_id}/join", headers=as_user("u3"))
    assert full.status_code == 400
    assert full.json()["detail"] == "capacity_exceeded"
    assert full.json()["message"] == "Event is at full capacity (2)"
    assert full.json()["request_id"]

    accepted = await api_client.post(
        f"/events/{event_id}/accept-request", json={"userId": "u1"}, headers=CREATOR
    )
    assert accepted.status_code == 200
    statuses = {p["userId"]: p["status"] for p in accepted.json()["participants"]}
    assert statuses == {"u1": "approved", "u2": "pending"}

    still_full = await api_client.post(f"/events/{event_id}/join", headers=as_user("u3"))
    assert still_full.status_code == 400


@pytest.mark.asyncio
async def test_creator_cannot_join_and_duplicates_conflict(api_client):
    event = await _create_event(api_client, 3)
    own = await api_client.post(f"/events/{event['id']}/join", headers=CREATOR)
    assert own.status_code == 400
    assert own.json()["detail"] == "creator_cannot_join"

    await api_client.post(f"/events/{event['id']}/join", headers=as_user("u1"))
    again = await api_client.post(f"/events/{event['id']}/join", headers=as_user("u1"))
    assert again.status_code == 400
    assert again.json()["detail"] == "already_participating"


@pytest.mark.asyncio
async def test_rejected_user_must_leave_before_rejoining(api_client):
    event = await _create_event(api_client, 3, "verification_required")
    event_id = event["id"]
    await api_client.post(f"/events/{event_id}/join", headers=as_user("u1"))
    rejected = await api_client.post(
        f"/events/{event_id}/reject-request", json={"userId": "u1"}, headers=CREATOR
    )
    assert rejected.json()["participants"][0]["status"] == "rejected"

    blocked = await api_client.post(f"/events/{event_id}/join", headers=as_user("u1"))
    assert blocked.status_code == 400

    left = await api_client.post(f"/events/{event_id}/leave", headers=as_user("u1"))
    assert left.status_code == 200
    assert left.json()["participants"] == []
    rejoined = await api_client.post(f"/events/{event_id}/join", headers=as_user("u1"))
    assert rejoined.status_code == 200


@pytest.mark.asyncio
async def test_decisions_require_creator_and_known_participant(api_client):
    event = await _create_event(api_client, 3, "verification_required")
    event_id = event["id"]
    await api_client.post(f"/events/{event_id}/join", headers=as_user("u1"))

    forbidden = await api_client.post(
        f"/events/{event_id}/accept-request", json={"userId": "u1"}, headers=as_user("u1")
    )
    assert forbidden.status_code == 403

    missing = await api_client.post(
        f"/events/{event_id}/accept-request", json={"userId": "ghost"}, headers=CREATOR
    )
    assert missing.status_code == 404
    assert missing.json()["detail"] == "participant_not_found"


@pytest.mark.asyncio
async def test_unknown_event_is_404(api_client):
    for path in ("/events/nope", "/events/nope/join", "/events/nope/leave"):
        method = api_client.get if path == "/events/nope" else api_client.post
        response = await method(path, headers=as_user("u1"))
        assert response.status_code == 404
        assert response.json()["detail"] == "event_not_found"


@pytest.mark.asyncio
async def test_leave_is_idempotent_over_http(api_client):
    event = await _create_event(api_client, 3)
    await api_client.post(f"/events/{event['id']}/join", headers=as_user("u1"))
    first = await api_client.post(f"/events/{event['id']}/leave", headers=as_user("u1"))
    second = await api_client.post(f"/events/{event['id']}/leave", headers=as_user("u1"))
    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()


@pytest.mark.asyncio
async def test_managed_events_lists_only_own(api_client):
    event = await _create_event(api_client, 3)
    await api_client.post(f"/events/{event['id']}/join", headers=as_user("u1"))

    managed = await api_client.get("/events/managed", headers=CREATOR)
    assert managed.status_code == 200
    items = managed.json()
    assert [item["id"] for item in items] == [event["id"]]
    assert items[0]["participants"][0]["profile"]["displayName"] == "u1"

    other = await api_client.get("/events/managed", headers=as_user("u1"))
    assert other.json() == []


@pytest.mark.asyncio
async def test_accept_at_full_headcount_is_400(api_client):
    event = await _create_event(api_client, 1, "verification_required")
    event_id = event["id"]

    await api_client.post(f"/events/{event_id}/join", headers=as_user("u1"))
    rejected = await api_client.post(
        f"/events/{event_id}/reject-request", json={"userId": "u1"}, headers=CREATOR
    )
    assert rejected.status_code == 200
    await api_client.post(f"/events/{event_id}/join", headers=as_user("u2"))
    accepted = await api_client.post(
        f"/events/{event_id}/accept-request", json={"userId": "u2"}, headers=CREATOR
    )
    assert accepted.status_code == 200

    over = await api_client.post(
        f"/events/{event_id}/accept-request", json={"userId": "u1"}, headers=CREATOR
    )
    assert over.status_code == 400
    assert over.json()["detail"] == "capacity_exceeded"
