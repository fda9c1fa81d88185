"""Event persistence backed by asyncpg with an in-memory store when no database is configured."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

import asyncpg

from huddle.domain.errors import PersistenceError, event_not_found
from huddle.domain.events.models import AccessMode, Event, Participation, ParticipationStatus
from huddle.infra.postgres import get_pool

EventMutation = Callable[[Event], Event]


class _MemoryStore:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.events: Dict[str, Event] = {}

	async def create_event(self, event: Event) -> Event:
		async with self._lock:
			self.events[event.id] = event
			return event

	async def get_event(self, event_id: str) -> Optional[Event]:
		async with self._lock:
			return self.events.get(event_id)

	async def mutate(self, event_id: str, mutation: EventMutation) -> Event:
		async with self._lock:
			current = self.events.get(event_id)
			if current is None:
				raise event_not_found(event_id)
			updated = mutation(current)
			self.events[event_id] = updated
			return updated

	async def list_by_creator(self, user_id: str) -> List[Event]:
		async with self._lock:
			events = [event for event in self.events.values() if event.creator_id == user_id]
		# Newest first; ties keep the most recently created first.
		return sorted(reversed(events), key=lambda e: e.created_at, reverse=True)

	async def list_by_ids(self, event_ids: List[str]) -> List[Event]:
		async with self._lock:
			return [self.events[eid] for eid in event_ids if eid in self.events]

	async def member_event_ids(self, user_id: str) -> List[str]:
		async with self._lock:
			return [event.id for event in self.events.values() if event.is_member(user_id)]


def _row_to_participation(row) -> Participation:
	return Participation(
		user_id=str(row["user_id"]),
		status=ParticipationStatus(row["status"]),
		joined_at=row["joined_at"],
		updated_at=row["updated_at"],
	)


def _row_to_event(row, participants: List[Participation]) -> Event:
	return Event(
		id=str(row["id"]),
		creator_id=str(row["creator_id"]),
		title=row["title"],
		capacity=int(row["capacity"]),
		access_mode=AccessMode(row["access_mode"]),
		created_at=row["created_at"],
		participants=tuple(participants),
	)


class EventRepository:
	"""Stores events together with their embedded participant list."""

	def __init__(self) -> None:
		self._memory = _MemoryStore()

	async def _pool(self) -> Optional[asyncpg.Pool]:
		try:
			return await get_pool()
		except (asyncpg.PostgresError, OSError) as exc:
			raise PersistenceError("Event store unavailable") from exc

	async def _run(self, operation: Callable[[asyncpg.Connection], Awaitable]) -> object:
		pool = await self._pool()
		if pool is None:
			raise PersistenceError("Event store unavailable")
		try:
			async with pool.acquire() as conn:
				return await operation(conn)
		except (asyncpg.PostgresError, OSError) as exc:
			raise PersistenceError("Event store operation failed") from exc

	async def create_event(self, event: Event) -> Event:
		if await self._pool() is None:
			return await self._memory.create_event(event)

		async def _insert(conn: asyncpg.Connection) -> Event:
			await conn.execute(
				"""
				INSERT INTO events (id, creator_id, title, capacity, access_mode, created_at)
				VALUES ($1, $2, $3, $4, $5, $6)
				""",
				event.id,
				event.creator_id,
				event.title,
				event.capacity,
				event.access_mode.value,
				event.created_at,
			)
			return event

		return await self._run(_insert)  # type: ignore[return-value]

	async def get_event(self, event_id: str) -> Optional[Event]:
		if await self._pool() is None:
			return await self._memory.get_event(event_id)

		async def _fetch(conn: asyncpg.Connection) -> Optional[Event]:
			return await self._load(conn, event_id, lock=False)

		return await self._run(_fetch)  # type: ignore[return-value]

	async def mutate(self, event_id: str, mutation: EventMutation) -> Event:
		"""Apply ``mutation`` to the stored event as one atomic read-modify-write.

		The mutation may raise a domain error, in which case nothing is written.
		"""
		if await self._pool() is None:
			return await self._memory.mutate(event_id, mutation)

		async def _apply(conn: asyncpg.Connection) -> Event:
			async with conn.transaction():
				current = await self._load(conn, event_id, lock=True)
				if current is None:
					raise event_not_found(event_id)
				updated = mutation(current)
				await self._write_participants(conn, current, updated)
				return updated

		return await self._run(_apply)  # type: ignore[return-value]

	async def list_by_creator(self, user_id: str) -> List[Event]:
		if await self._pool() is None:
			return await self._memory.list_by_creator(user_id)

		async def _fetch(conn: asyncpg.Connection) -> List[Event]:
			rows = await conn.fetch(
				"SELECT * FROM events WHERE creator_id = $1 ORDER BY created_at DESC",
				user_id,
			)
			return await self._attach_participants(conn, rows)

		return await self._run(_fetch)  # type: ignore[return-value]

	async def list_by_ids(self, event_ids: List[str]) -> List[Event]:
		if not event_ids:
			return []
		if await self._pool() is None:
			return await self._memory.list_by_ids(event_ids)

		async def _fetch(conn: asyncpg.Connection) -> List[Event]:
			rows = await conn.fetch("SELECT * FROM events WHERE id = ANY($1::text[])", event_ids)
			return await self._attach_participants(conn, rows)

		return await self._run(_fetch)  # type: ignore[return-value]

	async def member_event_ids(self, user_id: str) -> List[str]:
		if await self._pool() is None:
			return await self._memory.member_event_ids(user_id)

		async def _fetch(conn: asyncpg.Connection) -> List[str]:
			rows = await conn.fetch(
				"""
				SELECT id FROM events WHERE creator_id = $1
				UNION
				SELECT event_id FROM event_participants WHERE user_id = $1 AND status = $2
				""",
				user_id,
				ParticipationStatus.APPROVED.value,
			)
			return [str(row[0]) for row in rows]

		return await self._run(_fetch)  # type: ignore[return-value]

	async def _load(self, conn: asyncpg.Connection, event_id: str, *, lock: bool) -> Optional[Event]:
		query = "SELECT * FROM events WHERE id = $1"
		if lock:
			query += " FOR UPDATE"
		row = await conn.fetchrow(query, event_id)
		if row is None:
			return None
		participant_rows = await conn.fetch(
			"SELECT * FROM event_participants WHERE event_id = $1 ORDER BY joined_at ASC, user_id ASC",
			event_id,
		)
		return _row_to_event(row, [_row_to_participation(p) for p in participant_rows])

	async def _attach_participants(self, conn: asyncpg.Connection, rows) -> List[Event]:
		if not rows:
			return []
		ids = [str(row["id"]) for row in rows]
		participant_rows = await conn.fetch(
			"""
			SELECT * FROM event_participants
			WHERE event_id = ANY($1::text[])
			ORDER BY joined_at ASC, user_id ASC
			""",
			ids,
		)
		grouped: Dict[str, List[Participation]] = {eid: [] for eid in ids}
		for participant_row in participant_rows:
			grouped[str(participant_row["event_id"])].append(_row_to_participation(participant_row))
		return [_row_to_event(row, grouped[str(row["id"])]) for row in rows]

	async def _write_participants(self, conn: asyncpg.Connection, before: Event, after: Event) -> None:
		previous = {p.user_id: p for p in before.participants}
		current = {p.user_id: p for p in after.participants}
		removed = [uid for uid in previous if uid not in current]
		if removed:
			await conn.execute(
				"DELETE FROM event_participants WHERE event_id = $1 AND user_id = ANY($2::text[])",
				after.id,
				removed,
			)
		for user_id, participation in current.items():
			if previous.get(user_id) == participation:
				continue
			await conn.execute(
				"""
				INSERT INTO event_participants (event_id, user_id, status, joined_at, updated_at)
				VALUES ($1, $2, $3, $4, $5)
				ON CONFLICT (event_id, user_id)
				DO UPDATE SET status = EXCLUDED.status, updated_at = EXCLUDED.updated_at
				""",
				after.id,
				user_id,
				participation.status.value,
				participation.joined_at,
				participation.updated_at,
			)
