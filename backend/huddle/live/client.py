"""Python client for the live channel.

Wraps ``socketio.AsyncClient`` with the service's reconnect policy: a fixed
delay between attempts and a bounded number of attempts.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import socketio

from huddle.live.envelope import LIVE_EVENT, LIVE_NAMESPACE, ClientKind, ServerKind
from huddle.settings import settings

logger = logging.getLogger(__name__)

EnvelopeHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class LiveClient:
	def __init__(
		self,
		url: str,
		*,
		token: Optional[str] = None,
		user_id: Optional[str] = None,
		reconnect_attempts: Optional[int] = None,
		reconnect_delay: Optional[float] = None,
		client: Optional[socketio.AsyncClient] = None,
	) -> None:
		self.url = url
		self.user_id = user_id
		self._token = token
		attempts = settings.live_reconnect_attempts if reconnect_attempts is None else reconnect_attempts
		delay = settings.live_reconnect_delay_seconds if reconnect_delay is None else reconnect_delay
		self._sio = client or socketio.AsyncClient(
			reconnection=True,
			reconnection_attempts=attempts,
			reconnection_delay=delay,
			reconnection_delay_max=delay,
			randomization_factor=0,
		)
		self._handlers: Dict[str, List[EnvelopeHandler]] = {}
		self._sio.on(LIVE_EVENT, self._dispatch, namespace=LIVE_NAMESPACE)
		self._sio.on("connect", self._on_connect, namespace=LIVE_NAMESPACE)
		self._sio.on("disconnect", self._on_disconnect, namespace=LIVE_NAMESPACE)

	@property
	def connected(self) -> bool:
		return bool(self._sio.connected)

	def on(self, kind: ServerKind, handler: EnvelopeHandler) -> None:
		self._handlers.setdefault(kind.value, []).append(handler)

	def _auth(self) -> Dict[str, str]:
		if self._token:
			return {"token": self._token}
		if self.user_id:
			return {"userId": self.user_id}
		return {}

	async def connect(self) -> None:
		await self._sio.connect(self.url, namespaces=[LIVE_NAMESPACE], auth=self._auth())

	async def disconnect(self) -> None:
		await self._sio.disconnect()

	async def send(self, kind: ClientKind, payload: Dict[str, Any]) -> None:
		await self._sio.emit(LIVE_EVENT, {"type": kind.value, "payload": payload}, namespace=LIVE_NAMESPACE)

	async def join(self) -> None:
		if not self.user_id:
			raise ValueError("user_id is required to join")
		await self.send(ClientKind.JOIN, {"userId": self.user_id})

	async def join_event(self, event_id: str) -> None:
		await self.send(ClientKind.JOIN_EVENT, {"eventId": event_id})

	async def leave_event(self, event_id: str) -> None:
		await self.send(ClientKind.LEAVE_EVENT, {"eventId": event_id})

	async def send_message(
		self,
		content: str,
		*,
		recipient: Optional[str] = None,
		event_id: Optional[str] = None,
	) -> None:
		payload: Dict[str, Any] = {
			"sender": self.user_id,
			"content": content,
			"chatType": "group" if event_id else "one-to-one",
		}
		if recipient:
			payload["recipient"] = recipient
		if event_id:
			payload["eventId"] = event_id
		await self.send(ClientKind.SEND_MESSAGE, payload)

	async def mark_as_read(self, message_ids: Iterable[str]) -> None:
		await self.send(ClientKind.MARK_AS_READ, {"messageIds": list(message_ids), "userId": self.user_id})

	async def _on_connect(self) -> None:
		logger.info("live_client_connected", extra={"user_id": self.user_id})
		# Every (re)connect starts an unregistered server session.
		if self.user_id:
			await self.join()

	async def _on_disconnect(self, *args: Any) -> None:
		logger.info("live_client_disconnected", extra={"user_id": self.user_id})

	async def _dispatch(self, data: Any) -> None:
		if not isinstance(data, dict):
			return
		for handler in self._handlers.get(str(data.get("type")), []):
			await handler(data.get("payload") or {})
