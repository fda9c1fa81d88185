"""Read-only view of the user profile service.

Profiles are owned elsewhere; this module only resolves display names and
avatars for chat previews and managed-event rosters.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import asyncpg

from huddle.domain.errors import PersistenceError
from huddle.infra.postgres import get_pool

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ProfileSummary:
	user_id: str
	display_name: str
	avatar_url: Optional[str] = None


def fallback_summary(user_id: str) -> ProfileSummary:
	return ProfileSummary(user_id=user_id, display_name=user_id)


class ProfileDirectory:
	"""Looks users up in the shared ``users`` table, or in memory without a database."""

	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self._memory: Dict[str, ProfileSummary] = {}

	async def remember(self, summary: ProfileSummary) -> None:
		"""Seed a profile for memory mode.

		Only consulted when no database is configured; with a pool, lookups always
		go to ``users``.
		"""
		async with self._lock:
			self._memory[summary.user_id] = summary

	async def get_summaries(self, user_ids: Iterable[str]) -> Dict[str, ProfileSummary]:
		wanted = sorted({str(uid) for uid in user_ids if uid})
		if not wanted:
			return {}
		pool = await get_pool()
		if pool is None:
			async with self._lock:
				return {uid: self._memory.get(uid) or fallback_summary(uid) for uid in wanted}
		try:
			async with pool.acquire() as conn:
				rows = await conn.fetch(
					"""
					SELECT id::text AS id, COALESCE(NULLIF(display_name, ''), handle, id::text) AS display_name, avatar_url
					FROM users
					WHERE id::text = ANY($1::text[])
					""",
					wanted,
				)
		except asyncpg.UndefinedTableError:
			logger.warning("profiles_table_missing")
			return {uid: fallback_summary(uid) for uid in wanted}
		except (asyncpg.PostgresError, OSError) as exc:
			raise PersistenceError("Profile lookup failed") from exc
		found = {
			str(row["id"]): ProfileSummary(
				user_id=str(row["id"]),
				display_name=str(row["display_name"]),
				avatar_url=row["avatar_url"],
			)
			for row in rows
		}
		return {uid: found.get(uid) or fallback_summary(uid) for uid in wanted}
