"""Outbox helpers for chat events."""

from __future__ import annotations

import logging
from typing import Any

from redis.exceptions import RedisError

from huddle.domain.chat.models import Message
from huddle.infra.redis import redis_client

CHAT_EVENT_STREAM = "x:chat.events"

logger = logging.getLogger(__name__)


async def append_message_event(event: str, message: Message) -> None:
	fields: dict[str, Any] = {
		"event": event,
		"msg_id": message.id,
		"chat_type": message.chat_type.value,
		"sender_id": message.sender_id,
	}
	if message.recipient_id:
		fields["recipient_id"] = message.recipient_id
	if message.event_id:
		fields["event_id"] = message.event_id
	try:
		await redis_client.xadd(CHAT_EVENT_STREAM, fields)
	except RedisError:
		logger.warning("chat_outbox_failed", extra={"event": event, "msg_id": message.id})
