import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from huddle.domain.chat.aggregator import ChatAggregator
from huddle.domain.chat.models import ChatType
from huddle.domain.chat.outbox import CHAT_EVENT_STREAM
from huddle.domain.chat.repo import MessageRepository
from huddle.domain.chat.schemas import SendMessageRequest
from huddle.domain.errors import RateLimitedError, TransportError, ValidationError
from huddle.domain.events.repo import EventRepository
from huddle.domain.events.schemas import ParticipationUpdate
from huddle.domain.profiles import ProfileDirectory
from huddle.infra import rate_limit
from huddle.live.registry import ConnectionRegistry
from huddle.live.router import MessageRouter


class RecordingTransport:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent = []

    async def send(self, envelope):
        if self.fail:
            raise TransportError("socket gone")
        self.sent.append(envelope)

    async def close(self):
        return None

    def kinds(self):
        return [envelope["type"] for envelope in self.sent]


def one_to_one(content: str = "hi", recipient: str = "bob") -> SendMessageRequest:
    return SendMessageRequest(content=content, chat_type=ChatType.ONE_TO_ONE, recipient=recipient)


def group(content: str = "hi all", event_id: str = "evt-1") -> SendMessageRequest:
    return SendMessageRequest(content=content, chat_type=ChatType.GROUP, event_id=event_id)


@pytest.fixture
def repo():
    return MessageRepository()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def router(repo, registry):
    return MessageRouter(repo, registry)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "request_obj",
    [
        SendMessageRequest(content="   ", chat_type=ChatType.ONE_TO_ONE, recipient="bob"),
        SendMessageRequest(content="hi", chat_type=ChatType.ONE_TO_ONE),
        SendMessageRequest(content="hi", chat_type=ChatType.ONE_TO_ONE, recipient="bob", event_id="evt-1"),
        SendMessageRequest(content="hi", chat_type=ChatType.GROUP),
        SendMessageRequest(content="hi", chat_type=ChatType.GROUP, event_id="evt-1", recipient="bob"),
        SendMessageRequest(content="x" * 4001, chat_type=ChatType.ONE_TO_ONE, recipient="bob"),
    ],
)
async def test_invalid_messages_are_rejected_before_persisting(router, repo, request_obj):
    with pytest.raises(ValidationError):
        await router.send_message("alice", request_obj)
    assert await repo.list_for_user("alice", ["evt-1"]) == []


@pytest.mark.asyncio
async def test_one_to_one_is_persisted_then_pushed_and_acked(router, repo, registry, fake_redis):
    alice, bob = RecordingTransport(), RecordingTransport()
    await registry.register("alice", alice, "sid-a")
    await registry.register("bob", bob, "sid-b")

    message = await router.send_message("alice", one_to_one("  hello  "))

    assert message.content == "hello"
    assert (await repo.get(message.id)) == message
    assert bob.kinds() == ["newMessage"]
    assert bob.sent[0]["payload"]["id"] == message.id
    assert bob.sent[0]["payload"]["chatType"] == "one-to-one"
    assert alice.kinds() == ["messageSent"]
    entries = await fake_redis.xrange(CHAT_EVENT_STREAM)
    assert entries[0][1]["msg_id"] == message.id


@pytest.mark.asyncio
async def test_offline_recipient_still_gets_message_persisted(router, repo):
    message = await router.send_message("alice", one_to_one())
    history = await repo.list_one_to_one("bob", "alice", 50)
    assert [m.id for m in history] == [message.id]


@pytest.mark.asyncio
async def test_group_message_reaches_every_subscribed_session(router, registry):
    sender, member, outsider = RecordingTransport(), RecordingTransport(), RecordingTransport()
    await registry.register("alice", sender, "sid-a")
    await registry.register("bob", member, "sid-b")
    await registry.register("carol", outsider, "sid-c")
    await registry.subscribe_room("sid-a", "evt-1")
    await registry.subscribe_room("sid-b", "evt-1")

    await router.send_message("alice", group())

    assert member.kinds() == ["newMessage"]
    assert sender.kinds() == ["newMessage", "messageSent"]
    assert outsider.sent == []


@pytest.mark.asyncio
async def test_transport_failure_does_not_fail_the_send(router, repo, registry):
    broken, healthy = RecordingTransport(fail=True), RecordingTransport()
    await registry.register("alice", healthy, "sid-a")
    await registry.register("bob", broken, "sid-b")
    await registry.subscribe_room("sid-a", "evt-1")
    await registry.subscribe_room("sid-b", "evt-1")

    message = await router.send_message("alice", group())

    assert healthy.kinds() == ["newMessage", "messageSent"]
    assert [m.id for m in await repo.list_group("evt-1", 50)] == [message.id]
    assert await registry.get_for_user("bob") is None
    assert [s.user_id for s in await registry.sessions_in_room("evt-1")] == ["alice"]


@pytest.mark.asyncio
async def test_failed_push_still_shows_in_recipient_previews(router, repo, registry):
    await registry.register("bob", RecordingTransport(fail=True), "sid-b")

    message = await router.send_message("alice", one_to_one("are you there?"))

    aggregator = ChatAggregator(repo, EventRepository(), ProfileDirectory())
    previews = await aggregator.list_chats("bob")
    assert [(p.chat_id, p.unread_count) for p in previews] == [("alice", 1)]
    assert previews[0].last_message.id == message.id


@pytest.mark.asyncio
async def test_send_rate_limit(repo, registry):
    router = MessageRouter(repo, registry, send_limit_per_minute=2)
    await router.send_message("alice", one_to_one("1"))
    await router.send_message("alice", one_to_one("2"))
    with pytest.raises(RateLimitedError):
        await router.send_message("alice", one_to_one("3"))
    # Other senders have their own budget.
    await router.send_message("bob", one_to_one("1", recipient="alice"))


@pytest.mark.asyncio
async def test_rate_limiter_fails_open_when_redis_is_down(router, repo, monkeypatch):
    async def _down(*args, **kwargs):
        raise RedisConnectionError("redis unavailable")

    monkeypatch.setattr(rate_limit, "allow", _down)
    message = await router.send_message("alice", one_to_one())
    assert (await repo.get(message.id)) is not None


@pytest.mark.asyncio
async def test_participation_update_is_pushed_to_recipient(router, registry):
    creator = RecordingTransport()
    await registry.register("creator", creator, "sid-c")

    await router.participation_changed(
        "creator",
        ParticipationUpdate(event_id="evt-1", user_id="alice", status=None),
    )

    assert creator.sent == [
        {"type": "participationUpdated", "payload": {"eventId": "evt-1", "userId": "alice", "status": None}}
    ]


@pytest.mark.asyncio
async def test_ack_goes_to_the_originating_transport(router, registry):
    registered, origin = RecordingTransport(), RecordingTransport()
    await registry.register("alice", registered, "sid-new")

    await router.send_message("alice", one_to_one(), reply_to=origin)

    assert origin.kinds() == ["messageSent"]
    assert registered.sent == []


@pytest.mark.asyncio
async def test_failed_ack_does_not_fail_the_send(router, repo):
    message = await router.send_message("alice", one_to_one(), reply_to=RecordingTransport(fail=True))
    assert (await repo.get(message.id)) is not None
