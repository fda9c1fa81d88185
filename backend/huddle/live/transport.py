"""Per-session push handles."""

from __future__ import annotations

from typing import Any, Dict, Protocol

import socketio

from huddle.domain.errors import TransportError
from huddle.live.envelope import LIVE_EVENT


class Transport(Protocol):
	async def send(self, envelope: Dict[str, Any]) -> None:
		...

	async def close(self) -> None:
		...


class SocketTransport:
	"""Sends envelopes to one Socket.IO session."""

	def __init__(self, namespace: socketio.AsyncNamespace, sid: str) -> None:
		self._namespace = namespace
		self.sid = sid

	async def send(self, envelope: Dict[str, Any]) -> None:
		try:
			await self._namespace.emit(LIVE_EVENT, envelope, to=self.sid)
		except Exception as exc:
			raise TransportError(f"Delivery to session {self.sid} failed") from exc

	async def close(self) -> None:
		try:
			await self._namespace.disconnect(self.sid)
		except Exception as exc:
			raise TransportError(f"Closing session {self.sid} failed") from exc

	def __repr__(self) -> str:
		return f"SocketTransport(sid={self.sid!r})"
