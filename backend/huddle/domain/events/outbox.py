"""Outbox helpers for participation changes."""

from __future__ import annotations

import logging
from typing import Any, Optional

from redis.exceptions import RedisError

from huddle.infra.redis import redis_client

PARTICIPATION_STREAM = "x:events.participation"

logger = logging.getLogger(__name__)


async def append_participation_event(
	event: str,
	event_id: str,
	*,
	user_id: str,
	status: Optional[str] = None,
	actor_id: Optional[str] = None,
) -> None:
	fields: dict[str, Any] = {
		"event": event,
		"event_id": event_id,
		"user_id": str(user_id),
	}
	if status:
		fields["status"] = status
	if actor_id:
		fields["actor_id"] = str(actor_id)
	try:
		await redis_client.xadd(PARTICIPATION_STREAM, fields)
	except RedisError:
		logger.warning("participation_outbox_failed", extra={"event": event, "event_id": event_id})
