"""Socket.IO namespace for the live channel."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import socketio
from socketio import exceptions as sio_exceptions

from huddle.domain.chat.schemas import MarkReadRequest, SendMessageRequest
from huddle.domain.chat.service import ChatService
from huddle.domain.errors import ForbiddenError, HuddleError
from huddle.infra.auth import AuthenticatedUser, authenticate_socket
from huddle.live.envelope import (
	LIVE_EVENT,
	LIVE_NAMESPACE,
	ClientEnvelope,
	ClientKind,
	EventRoomPayload,
	JoinPayload,
	ServerKind,
	error_envelope,
	parse_client_envelope,
	parse_payload,
	server_envelope,
)
from huddle.live.registry import ConnectionRegistry
from huddle.live.router import MessageRouter
from huddle.live.transport import SocketTransport
from huddle.obs import logging as obs_logging
from huddle.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

Handler = Callable[[str, AuthenticatedUser, Dict[str, Any]], Awaitable[None]]


def _user_mismatch() -> ForbiddenError:
	return ForbiddenError("User does not match the authenticated session", code="user_mismatch")


class LiveNamespace(socketio.AsyncNamespace):
	"""Dispatches ``message`` envelopes to the registry, router and chat service."""

	def __init__(
		self,
		registry: ConnectionRegistry,
		router: MessageRouter,
		chat: ChatService,
		namespace: str = LIVE_NAMESPACE,
	) -> None:
		super().__init__(namespace)
		self._registry = registry
		self._router = router
		self._chat = chat
		self.users: Dict[str, AuthenticatedUser] = {}
		self._handlers: Dict[ClientKind, Handler] = {
			ClientKind.JOIN: self._handle_join,
			ClientKind.JOIN_EVENT: self._handle_join_event,
			ClientKind.LEAVE_EVENT: self._handle_leave_event,
			ClientKind.SEND_MESSAGE: self._handle_send_message,
			ClientKind.MARK_AS_READ: self._handle_mark_as_read,
		}

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		try:
			user = authenticate_socket(environ, auth)
		except ValueError as exc:
			raise sio_exceptions.ConnectionRefusedError(str(exc)) from None
		self.users[sid] = user
		obs_metrics.socket_connected(self.namespace)
		logger.info("live_connected", extra={"user_id": user.id, "session_id": sid})

	async def on_disconnect(self, sid: str, reason: Any = None) -> None:
		user = self.users.pop(sid, None)
		if user is None:
			return
		obs_metrics.socket_disconnected(self.namespace)
		await self._registry.unregister(sid)
		logger.info("live_disconnected", extra={"user_id": user.id, "session_id": sid})

	async def on_message(self, sid: str, data: Any = None) -> None:
		user = self.users.get(sid)
		if user is None:
			await self._reply(sid, error_envelope("Not authenticated"))
			return
		tokens = obs_logging.bind_context(user_id=user.id)
		try:
			envelope: ClientEnvelope = parse_client_envelope(data)
			obs_metrics.socket_event(self.namespace, envelope.type.value)
			await self._handlers[envelope.type](sid, user, envelope.payload)
		except HuddleError as exc:
			await self._reply(sid, error_envelope(exc.message))
		except Exception:
			logger.exception("live_message_failed", extra={"session_id": sid})
			await self._reply(sid, error_envelope("Error processing message"))
		finally:
			obs_logging.reset_context(tokens)

	async def _handle_join(self, sid: str, user: AuthenticatedUser, payload: Dict[str, Any]) -> None:
		body: JoinPayload = parse_payload(JoinPayload, payload)
		if body.user_id != user.id:
			raise _user_mismatch()
		await self._registry.register(user.id, SocketTransport(self, sid), sid)

	async def _handle_join_event(self, sid: str, user: AuthenticatedUser, payload: Dict[str, Any]) -> None:
		body: EventRoomPayload = parse_payload(EventRoomPayload, payload)
		await self._chat.ensure_member(body.event_id, user.id)
		await self._registry.subscribe_room(sid, body.event_id)

	async def _handle_leave_event(self, sid: str, user: AuthenticatedUser, payload: Dict[str, Any]) -> None:
		body: EventRoomPayload = parse_payload(EventRoomPayload, payload)
		await self._registry.unsubscribe_room(sid, body.event_id)

	async def _handle_send_message(self, sid: str, user: AuthenticatedUser, payload: Dict[str, Any]) -> None:
		request: SendMessageRequest = parse_payload(SendMessageRequest, payload)
		if not request.sender:
			raise _user_mismatch()
		await self._chat.authorize_send(user.id, request)
		await self._router.send_message(user.id, request, reply_to=SocketTransport(self, sid))

	async def _handle_mark_as_read(self, sid: str, user: AuthenticatedUser, payload: Dict[str, Any]) -> None:
		request: MarkReadRequest = parse_payload(MarkReadRequest, payload)
		if request.user_id and request.user_id != user.id:
			raise _user_mismatch()
		marked = await self._chat.mark_read(user.id, request.message_ids)
		await self._reply(sid, server_envelope(ServerKind.MESSAGES_READ, {"messageIds": marked}))

	async def _reply(self, sid: str, envelope: Dict[str, Any]) -> None:
		await self.emit(LIVE_EVENT, envelope, to=sid)
