import sys
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from huddle.infra import postgres
from huddle.live.runtime import LiveRuntime
from huddle.main import create_app
from huddle.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from huddle.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def memory_storage(monkeypatch):
	"""Run every repository against its in-memory store."""
	monkeypatch.setattr(settings, "postgres_url", None)
	postgres.set_pool(None)
	yield
	postgres.set_pool(None)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API tests authenticate via X-User-Id, which is only accepted in dev mode."""
	original_env = settings.environment
	original_limit = settings.send_rate_limit_per_minute
	settings.environment = "dev"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.send_rate_limit_per_minute = original_limit


@pytest.fixture
def runtime():
	return LiveRuntime()


@pytest_asyncio.fixture
async def api_client(runtime):
	app = create_app(runtime)
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
