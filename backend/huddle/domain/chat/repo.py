"""Message log persistence (asyncpg, or memory when no database is configured)."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

import asyncpg

from huddle.domain.chat.models import ChatType, Message, ReadReceipt
from huddle.domain.errors import PersistenceError
from huddle.infra.postgres import get_pool


def _latest(messages: List[Message], limit: int) -> List[Message]:
	ordered = sorted(messages, key=lambda m: m.created_at)
	return ordered[-limit:] if limit > 0 else []


class _MemoryStore:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.messages: Dict[str, Message] = {}

	async def create(self, message: Message) -> Message:
		async with self._lock:
			self.messages[message.id] = message
			return message

	async def get(self, message_id: str) -> Optional[Message]:
		async with self._lock:
			return self.messages.get(message_id)

	async def list_one_to_one(self, user_a: str, user_b: str, limit: int) -> List[Message]:
		pair = {user_a, user_b}
		async with self._lock:
			matching = [
				m
				for m in self.messages.values()
				if m.chat_type == ChatType.ONE_TO_ONE and {m.sender_id, m.recipient_id} == pair
			]
		return _latest(matching, limit)

	async def list_group(self, event_id: str, limit: int) -> List[Message]:
		async with self._lock:
			matching = [
				m for m in self.messages.values() if m.chat_type == ChatType.GROUP and m.event_id == event_id
			]
		return _latest(matching, limit)

	async def list_for_user(self, user_id: str, event_ids: Iterable[str]) -> List[Message]:
		events = set(event_ids)
		async with self._lock:
			return [
				m
				for m in self.messages.values()
				if (m.chat_type == ChatType.ONE_TO_ONE and user_id in (m.sender_id, m.recipient_id))
				or (m.chat_type == ChatType.GROUP and m.event_id in events)
			]

	async def add_read_receipts(self, message_ids: Iterable[str], user_id: str, read_at: datetime) -> List[str]:
		marked: List[str] = []
		async with self._lock:
			for message_id in message_ids:
				message = self.messages.get(message_id)
				if message is None or message.is_read_by(user_id):
					continue
				self.messages[message_id] = message.with_receipt(ReadReceipt(user_id=user_id, read_at=read_at))
				marked.append(message_id)
		return marked


def _row_to_message(row, receipts: List[ReadReceipt]) -> Message:
	return Message(
		id=str(row["id"]),
		sender_id=str(row["sender_id"]),
		content=row["content"],
		chat_type=ChatType(row["chat_type"]),
		recipient_id=row["recipient_id"],
		event_id=row["event_id"],
		created_at=row["created_at"],
		read_by=tuple(receipts),
	)


class MessageRepository:
	"""Append-only message log with per-user read receipts."""

	def __init__(self) -> None:
		self._memory = _MemoryStore()

	async def _pool(self) -> Optional[asyncpg.Pool]:
		try:
			return await get_pool()
		except (asyncpg.PostgresError, OSError) as exc:
			raise PersistenceError("Message store unavailable") from exc

	async def _run(self, operation: Callable[[asyncpg.Connection], Awaitable]) -> object:
		pool = await self._pool()
		if pool is None:
			raise PersistenceError("Message store unavailable")
		try:
			async with pool.acquire() as conn:
				return await operation(conn)
		except (asyncpg.PostgresError, OSError) as exc:
			raise PersistenceError("Message store operation failed") from exc

	async def create(self, message: Message) -> Message:
		if await self._pool() is None:
			return await self._memory.create(message)

		async def _insert(conn: asyncpg.Connection) -> Message:
			await conn.execute(
				"""
				INSERT INTO messages (id, sender_id, content, chat_type, recipient_id, event_id, created_at)
				VALUES ($1, $2, $3, $4, $5, $6, $7)
				""",
				message.id,
				message.sender_id,
				message.content,
				message.chat_type.value,
				message.recipient_id,
				message.event_id,
				message.created_at,
			)
			return message

		return await self._run(_insert)  # type: ignore[return-value]

	async def get(self, message_id: str) -> Optional[Message]:
		if await self._pool() is None:
			return await self._memory.get(message_id)

		async def _fetch(conn: asyncpg.Connection) -> Optional[Message]:
			row = await conn.fetchrow("SELECT * FROM messages WHERE id = $1", message_id)
			if row is None:
				return None
			messages = await self._attach_receipts(conn, [row])
			return messages[0]

		return await self._run(_fetch)  # type: ignore[return-value]

	async def list_one_to_one(self, user_a: str, user_b: str, limit: int) -> List[Message]:
		"""Latest ``limit`` messages between two users, oldest first."""
		if await self._pool() is None:
			return await self._memory.list_one_to_one(user_a, user_b, limit)

		async def _fetch(conn: asyncpg.Connection) -> List[Message]:
			rows = await conn.fetch(
				"""
				SELECT * FROM (
					SELECT * FROM messages
					WHERE chat_type = $1
					AND ((sender_id = $2 AND recipient_id = $3) OR (sender_id = $3 AND recipient_id = $2))
					ORDER BY created_at DESC
					LIMIT $4
				) latest
				ORDER BY created_at ASC
				""",
				ChatType.ONE_TO_ONE.value,
				user_a,
				user_b,
				limit,
			)
			return await self._attach_receipts(conn, rows)

		return await self._run(_fetch)  # type: ignore[return-value]

	async def list_group(self, event_id: str, limit: int) -> List[Message]:
		if await self._pool() is None:
			return await self._memory.list_group(event_id, limit)

		async def _fetch(conn: asyncpg.Connection) -> List[Message]:
			rows = await conn.fetch(
				"""
				SELECT * FROM (
					SELECT * FROM messages
					WHERE chat_type = $1 AND event_id = $2
					ORDER BY created_at DESC
					LIMIT $3
				) latest
				ORDER BY created_at ASC
				""",
				ChatType.GROUP.value,
				event_id,
				limit,
			)
			return await self._attach_receipts(conn, rows)

		return await self._run(_fetch)  # type: ignore[return-value]

	async def list_for_user(self, user_id: str, event_ids: Iterable[str]) -> List[Message]:
		"""Every message the user can see: their one-to-one traffic plus the given group chats."""
		events = list(event_ids)
		if await self._pool() is None:
			return await self._memory.list_for_user(user_id, events)

		async def _fetch(conn: asyncpg.Connection) -> List[Message]:
			rows = await conn.fetch(
				"""
				SELECT * FROM messages
				WHERE (chat_type = $1 AND (sender_id = $2 OR recipient_id = $2))
				OR (chat_type = $3 AND event_id = ANY($4::text[]))
				ORDER BY created_at ASC
				""",
				ChatType.ONE_TO_ONE.value,
				user_id,
				ChatType.GROUP.value,
				events,
			)
			return await self._attach_receipts(conn, rows)

		return await self._run(_fetch)  # type: ignore[return-value]

	async def add_read_receipts(self, message_ids: Iterable[str], user_id: str, read_at: datetime) -> List[str]:
		"""Record a receipt per known message not yet read by the user; return those ids."""
		ids = list(dict.fromkeys(message_ids))
		if not ids:
			return []
		if await self._pool() is None:
			return await self._memory.add_read_receipts(ids, user_id, read_at)

		async def _insert(conn: asyncpg.Connection) -> List[str]:
			rows = await conn.fetch(
				"""
				INSERT INTO message_reads (message_id, user_id, read_at)
				SELECT id, $2, $3 FROM messages WHERE id = ANY($1::text[])
				ON CONFLICT (message_id, user_id) DO NOTHING
				RETURNING message_id
				""",
				ids,
				user_id,
				read_at,
			)
			marked = {str(row["message_id"]) for row in rows}
			return [mid for mid in ids if mid in marked]

		return await self._run(_insert)  # type: ignore[return-value]

	async def _attach_receipts(self, conn: asyncpg.Connection, rows) -> List[Message]:
		if not rows:
			return []
		ids = [str(row["id"]) for row in rows]
		receipt_rows = await conn.fetch(
			"SELECT * FROM message_reads WHERE message_id = ANY($1::text[]) ORDER BY read_at ASC",
			ids,
		)
		grouped: Dict[str, List[ReadReceipt]] = {mid: [] for mid in ids}
		for receipt_row in receipt_rows:
			grouped[str(receipt_row["message_id"])].append(
				ReadReceipt(user_id=str(receipt_row["user_id"]), read_at=receipt_row["read_at"])
			)
		return [_row_to_message(row, grouped[str(row["id"])]) for row in rows]
