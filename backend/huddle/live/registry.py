"""In-process registry of live sessions.

One session per user. Registering again (a reconnect, a second tab) replaces
the previous session without notice; that session's later disconnect must not
evict the replacement, so ``unregister`` only drops the user entry while it
still points at the departing session.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from huddle.live.transport import Transport
from huddle.obs import metrics as obs_metrics


@dataclass(slots=True)
class ConnectionSession:
	user_id: str
	session_id: str
	transport: Transport
	subscribed_rooms: Set[str] = field(default_factory=set)


class ConnectionRegistry:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self._by_user: Dict[str, ConnectionSession] = {}
		self._by_session: Dict[str, ConnectionSession] = {}

	async def register(self, user_id: str, transport: Transport, session_id: str) -> Optional[ConnectionSession]:
		"""Store the session for ``user_id`` and return the one it replaced, if any."""
		async with self._lock:
			rooms: Set[str] = set()
			existing_for_sid = self._by_session.pop(session_id, None)
			if existing_for_sid is not None:
				if existing_for_sid.user_id == user_id:
					rooms = set(existing_for_sid.subscribed_rooms)
				if self._by_user.get(existing_for_sid.user_id) is existing_for_sid:
					del self._by_user[existing_for_sid.user_id]
			replaced = self._by_user.get(user_id)
			if replaced is not None:
				self._by_session.pop(replaced.session_id, None)
			session = ConnectionSession(
				user_id=user_id,
				session_id=session_id,
				transport=transport,
				subscribed_rooms=rooms,
			)
			self._by_user[user_id] = session
			self._by_session[session_id] = session
			obs_metrics.set_live_sessions(len(self._by_user))
		return replaced

	async def unregister(self, session_id: str) -> Optional[ConnectionSession]:
		async with self._lock:
			session = self._by_session.pop(session_id, None)
			if session is None:
				return None
			if self._by_user.get(session.user_id) is session:
				del self._by_user[session.user_id]
			obs_metrics.set_live_sessions(len(self._by_user))
			return session

	async def subscribe_room(self, session_id: str, event_id: str) -> bool:
		async with self._lock:
			session = self._by_session.get(session_id)
			if session is None:
				return False
			session.subscribed_rooms.add(event_id)
			return True

	async def unsubscribe_room(self, session_id: str, event_id: str) -> bool:
		async with self._lock:
			session = self._by_session.get(session_id)
			if session is None:
				return False
			session.subscribed_rooms.discard(event_id)
			return True

	async def get_for_user(self, user_id: str) -> Optional[ConnectionSession]:
		async with self._lock:
			return self._by_user.get(user_id)

	async def get_by_session(self, session_id: str) -> Optional[ConnectionSession]:
		async with self._lock:
			return self._by_session.get(session_id)

	async def sessions_in_room(self, event_id: str) -> List[ConnectionSession]:
		async with self._lock:
			return [s for s in self._by_session.values() if event_id in s.subscribed_rooms]

	async def count(self) -> int:
		async with self._lock:
			return len(self._by_user)

	async def drain(self) -> List[ConnectionSession]:
		"""Remove and return every session."""
		async with self._lock:
			sessions = list(self._by_session.values())
			self._by_session.clear()
			self._by_user.clear()
			obs_metrics.set_live_sessions(0)
			return sessions
