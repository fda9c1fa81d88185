"""Domain models for one-to-one and event group chat."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class ChatType(str, Enum):
	ONE_TO_ONE = "one-to-one"
	GROUP = "group"


@dataclass(slots=True, frozen=True)
class ReadReceipt:
	user_id: str
	read_at: datetime


@dataclass(slots=True, frozen=True)
class Message:
	"""A persisted chat message. Exactly one of recipient_id / event_id is set."""

	id: str
	sender_id: str
	content: str
	chat_type: ChatType
	created_at: datetime
	recipient_id: Optional[str] = None
	event_id: Optional[str] = None
	read_by: Tuple[ReadReceipt, ...] = field(default_factory=tuple)

	def is_read_by(self, user_id: str) -> bool:
		return any(receipt.user_id == user_id for receipt in self.read_by)

	def with_receipt(self, receipt: ReadReceipt) -> "Message":
		if self.is_read_by(receipt.user_id):
			return self
		return replace(self, read_by=(*self.read_by, receipt))

	def counterpart(self, user_id: str) -> Optional[str]:
		"""Other side of a one-to-one message from ``user_id``'s point of view."""
		if self.chat_type != ChatType.ONE_TO_ONE:
			return None
		if self.sender_id == user_id:
			return self.recipient_id
		if self.recipient_id == user_id:
			return self.sender_id
		return None


@dataclass(slots=True)
class ChatPreview:
	chat_id: str
	chat_type: ChatType
	display_name: str
	last_message: Optional[Message]
	unread_count: int = 0
