"""Per-key asyncio locks.

Callers sharing a key run one at a time; different keys never contend. Idle
entries are dropped so the map only holds keys with a holder or waiter.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class KeyedLock:
	def __init__(self) -> None:
		self._guard = asyncio.Lock()
		self._locks: Dict[str, asyncio.Lock] = {}
		self._users: Dict[str, int] = {}

	@asynccontextmanager
	async def hold(self, key: str) -> AsyncIterator[None]:
		async with self._guard:
			lock = self._locks.setdefault(key, asyncio.Lock())
			self._users[key] = self._users.get(key, 0) + 1
		try:
			async with lock:
				yield
		finally:
			async with self._guard:
				remaining = self._users[key] - 1
				if remaining:
					self._users[key] = remaining
				else:
					self._users.pop(key, None)
					self._locks.pop(key, None)

	def active_keys(self) -> int:
		return len(self._locks)
