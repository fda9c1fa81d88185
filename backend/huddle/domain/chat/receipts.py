"""Read-receipt tracking."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List

from huddle.domain.chat.repo import MessageRepository
from huddle.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class ReadReceiptTracker:
	"""Marks messages read for a user; each (message, user) pair is recorded once."""

	def __init__(self, repository: MessageRepository) -> None:
		self._repo = repository

	async def mark_read(self, message_ids: Iterable[str], user_id: str) -> List[str]:
		ids = [str(mid) for mid in message_ids if mid]
		if not ids:
			return []
		marked = await self._repo.add_read_receipts(ids, user_id, datetime.now(timezone.utc))
		if marked:
			obs_metrics.inc_chat_read(len(marked))
		logger.debug("messages_marked_read", extra={"user_id": user_id, "requested": len(ids), "marked": len(marked)})
		return marked
