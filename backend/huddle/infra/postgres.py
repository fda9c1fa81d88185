"""AsyncPG pool management for the backend."""

from __future__ import annotations

from typing import Optional

import asyncpg

from huddle.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS events (
	id TEXT PRIMARY KEY,
	creator_id TEXT NOT NULL,
	title TEXT NOT NULL,
	capacity INTEGER NOT NULL CHECK (capacity > 0),
	access_mode VARCHAR(32) NOT NULL,
	created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_events_creator ON events (creator_id, created_at DESC);

CREATE TABLE IF NOT EXISTS event_participants (
	event_id TEXT NOT NULL REFERENCES events(id) ON DELETE CASCADE,
	user_id TEXT NOT NULL,
	status VARCHAR(16) NOT NULL,
	joined_at TIMESTAMPTZ NOT NULL,
	updated_at TIMESTAMPTZ NOT NULL,
	PRIMARY KEY (event_id, user_id)
);
CREATE INDEX IF NOT EXISTS idx_event_participants_user ON event_participants (user_id, status);

CREATE TABLE IF NOT EXISTS messages (
	id TEXT PRIMARY KEY,
	sender_id TEXT NOT NULL,
	content TEXT NOT NULL,
	chat_type VARCHAR(16) NOT NULL,
	recipient_id TEXT,
	event_id TEXT,
	created_at TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_messages_pair ON messages (sender_id, recipient_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_messages_event ON messages (event_id, created_at DESC);

CREATE TABLE IF NOT EXISTS message_reads (
	message_id TEXT NOT NULL REFERENCES messages(id) ON DELETE CASCADE,
	user_id TEXT NOT NULL,
	read_at TIMESTAMPTZ NOT NULL,
	PRIMARY KEY (message_id, user_id)
);
"""


async def init_pool() -> Optional[asyncpg.pool.Pool]:
	global _pool
	if _pool is None and settings.database_enabled():
		dsn = str(settings.postgres_url).replace("localhost", "127.0.0.1")
		_pool = await asyncpg.create_pool(
			dsn=dsn,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
		)
	return _pool


def set_pool(pool: Optional[asyncpg.pool.Pool]) -> None:
	global _pool
	_pool = pool


async def get_pool() -> Optional[asyncpg.pool.Pool]:
	"""Return the shared pool, or None when no database is configured."""
	if _pool is None:
		await init_pool()
	return _pool


async def ensure_schema() -> None:
	pool = await get_pool()
	if pool is None:
		return
	async with pool.acquire() as conn:
		await conn.execute(SCHEMA_DDL)


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None
