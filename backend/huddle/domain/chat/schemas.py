"""Pydantic schemas for chat HTTP and live payloads."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from huddle.domain.chat.models import ChatPreview, ChatType, Message, ReadReceipt
from huddle.domain.wire import CamelModel


class SendMessageRequest(CamelModel):
	sender: Optional[str] = None
	content: str
	chat_type: ChatType
	recipient: Optional[str] = None
	event_id: Optional[str] = None


class MarkReadRequest(CamelModel):
	message_ids: List[str] = Field(default_factory=list)
	user_id: Optional[str] = None


class ReadReceiptResponse(CamelModel):
	user_id: str
	read_at: datetime

	@classmethod
	def from_model(cls, receipt: ReadReceipt) -> "ReadReceiptResponse":
		return cls(user_id=receipt.user_id, read_at=receipt.read_at)


class MessageResponse(CamelModel):
	id: str
	sender_id: str
	content: str
	chat_type: ChatType
	recipient_id: Optional[str] = None
	event_id: Optional[str] = None
	created_at: datetime
	read_by: List[ReadReceiptResponse] = Field(default_factory=list)

	@classmethod
	def from_model(cls, message: Message) -> "MessageResponse":
		return cls(
			id=message.id,
			sender_id=message.sender_id,
			content=message.content,
			chat_type=message.chat_type,
			recipient_id=message.recipient_id,
			event_id=message.event_id,
			created_at=message.created_at,
			read_by=[ReadReceiptResponse.from_model(r) for r in message.read_by],
		)


class MessagesReadResponse(CamelModel):
	message_ids: List[str]


class ChatPreviewResponse(CamelModel):
	chat_id: str
	type: ChatType
	display_name: str
	last_message: Optional[MessageResponse] = None
	unread_count: int

	@classmethod
	def from_model(cls, preview: ChatPreview) -> "ChatPreviewResponse":
		return cls(
			chat_id=preview.chat_id,
			type=preview.chat_type,
			display_name=preview.display_name,
			last_message=MessageResponse.from_model(preview.last_message) if preview.last_message else None,
			unread_count=preview.unread_count,
		)
