import pytest

from huddle.infra.rate_limit import allow


@pytest.mark.asyncio
async def test_send_budget_is_per_sender():
    assert await allow("chat_send", "alice", limit=2, window_seconds=60, now=120.0)
    assert await allow("chat_send", "alice", limit=2, window_seconds=60, now=121.0)
    assert not await allow("chat_send", "alice", limit=2, window_seconds=60, now=122.0)
    assert await allow("chat_send", "bob", limit=2, window_seconds=60, now=122.0)


@pytest.mark.asyncio
async def test_budget_resets_in_the_next_window():
    assert await allow("chat_send", "carol", limit=1, window_seconds=60, now=60.0)
    assert not await allow("chat_send", "carol", limit=1, window_seconds=60, now=119.0)
    assert await allow("chat_send", "carol", limit=1, window_seconds=60, now=180.0)


@pytest.mark.asyncio
async def test_zero_limit_blocks_everything():
    assert not await allow("chat_send", "dave", limit=0)
