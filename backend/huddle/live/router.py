"""Persist-then-deliver message routing."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import ulid
from redis.exceptions import RedisError

from huddle.domain.chat import outbox as chat_outbox
from huddle.domain.chat.models import ChatType, Message
from huddle.domain.chat.repo import MessageRepository
from huddle.domain.chat.schemas import MessageResponse, SendMessageRequest
from huddle.domain.errors import RateLimitedError, TransportError, ValidationError
from huddle.domain.events.schemas import ParticipationUpdate
from huddle.infra import rate_limit
from huddle.live.envelope import ServerKind, server_envelope
from huddle.live.registry import ConnectionRegistry, ConnectionSession
from huddle.live.transport import Transport
from huddle.obs import metrics as obs_metrics
from huddle.settings import settings

logger = logging.getLogger(__name__)


def build_message(sender_id: str, request: SendMessageRequest, *, max_length: int) -> Message:
	"""Validate the routing fields and content and return an unsaved message."""
	content = (request.content or "").strip()
	if not content:
		raise ValidationError("Message content cannot be empty", code="empty_content")
	if len(content) > max_length:
		raise ValidationError(f"Message content exceeds {max_length} characters", code="content_too_long")
	recipient = (request.recipient or "").strip() or None
	event_id = (request.event_id or "").strip() or None
	if request.chat_type == ChatType.ONE_TO_ONE:
		if recipient is None:
			raise ValidationError("One-to-one messages need a recipient", code="missing_recipient")
		if event_id is not None:
			raise ValidationError("One-to-one messages cannot target an event", code="unexpected_event_id")
	else:
		if event_id is None:
			raise ValidationError("Group messages need an eventId", code="missing_event_id")
		if recipient is not None:
			raise ValidationError("Group messages cannot have a recipient", code="unexpected_recipient")
	return Message(
		id=str(ulid.new()),
		sender_id=sender_id,
		content=content,
		chat_type=request.chat_type,
		recipient_id=recipient,
		event_id=event_id,
		created_at=datetime.now(timezone.utc),
	)


class MessageRouter:
	"""Stores each message, then pushes it to whoever is connected.

	Pushes are best effort: a failing session is logged and dropped from the
	registry, and the send still succeeds since the message is already stored.
	"""

	def __init__(
		self,
		repository: MessageRepository,
		registry: ConnectionRegistry,
		*,
		send_limit_per_minute: Optional[int] = None,
		max_length: Optional[int] = None,
	) -> None:
		self._repo = repository
		self._registry = registry
		self._send_limit = send_limit_per_minute
		self._max_length = max_length

	async def send_message(
		self,
		sender_id: str,
		request: SendMessageRequest,
		*,
		reply_to: Optional[Transport] = None,
	) -> Message:
		"""Persist, deliver, then acknowledge.

		The ``messageSent`` ack goes to ``reply_to`` when the send came from a live
		session, otherwise to whichever session the sender has registered.
		"""
		message = build_message(sender_id, request, max_length=self._max_length or settings.message_max_length)
		await self._enforce_rate_limit(sender_id)
		message = await self._repo.create(message)
		obs_metrics.inc_chat_send(message.chat_type.value)
		await chat_outbox.append_message_event("message_sent", message)

		body = MessageResponse.from_model(message).to_wire()
		if message.chat_type == ChatType.ONE_TO_ONE:
			await self.push_to_user(message.recipient_id, ServerKind.NEW_MESSAGE, body)  # type: ignore[arg-type]
		else:
			await self.broadcast_to_room(message.event_id, ServerKind.NEW_MESSAGE, body)  # type: ignore[arg-type]
		if reply_to is None:
			await self.push_to_user(sender_id, ServerKind.MESSAGE_SENT, body)
		else:
			await self._reply(reply_to, sender_id, ServerKind.MESSAGE_SENT, body)
		return message

	async def push_to_user(self, user_id: str, kind: ServerKind, payload: Dict[str, Any]) -> bool:
		session = await self._registry.get_for_user(user_id)
		if session is None:
			return False
		return await self._deliver(session, kind, payload)

	async def broadcast_to_room(self, event_id: str, kind: ServerKind, payload: Dict[str, Any]) -> int:
		delivered = 0
		for session in await self._registry.sessions_in_room(event_id):
			if await self._deliver(session, kind, payload):
				delivered += 1
		return delivered

	async def participation_changed(self, recipient_id: str, update: ParticipationUpdate) -> None:
		await self.push_to_user(recipient_id, ServerKind.PARTICIPATION_UPDATED, update.to_wire())

	async def _deliver(self, session: ConnectionSession, kind: ServerKind, payload: Dict[str, Any]) -> bool:
		try:
			await session.transport.send(server_envelope(kind, payload))
		except TransportError:
			obs_metrics.live_delivery(kind.value, ok=False)
			logger.warning(
				"live_delivery_failed",
				exc_info=True,
				extra={"kind": kind.value, "user_id": session.user_id, "session_id": session.session_id},
			)
			await self._registry.unregister(session.session_id)
			return False
		obs_metrics.live_delivery(kind.value, ok=True)
		return True

	async def _reply(self, transport: Transport, user_id: str, kind: ServerKind, payload: Dict[str, Any]) -> bool:
		try:
			await transport.send(server_envelope(kind, payload))
		except TransportError:
			obs_metrics.live_delivery(kind.value, ok=False)
			logger.warning("live_reply_failed", exc_info=True, extra={"kind": kind.value, "user_id": user_id})
			return False
		obs_metrics.live_delivery(kind.value, ok=True)
		return True

	async def _enforce_rate_limit(self, sender_id: str) -> None:
		try:
			allowed = await rate_limit.allow("chat_send", sender_id, limit=self._send_limit or settings.send_rate_limit_per_minute)
		except RedisError:
			logger.warning("send_rate_limit_unavailable", extra={"user_id": sender_id})
			return
		if not allowed:
			raise RateLimitedError("Too many messages, slow down", code="rate_limited")
