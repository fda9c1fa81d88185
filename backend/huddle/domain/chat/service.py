"""Chat read side: history, previews and read receipts."""

from __future__ import annotations

from typing import List

from huddle.domain.chat.aggregator import ChatAggregator
from huddle.domain.chat.models import ChatPreview, ChatType, Message
from huddle.domain.chat.receipts import ReadReceiptTracker
from huddle.domain.chat.repo import MessageRepository
from huddle.domain.chat.schemas import SendMessageRequest
from huddle.domain.errors import ForbiddenError
from huddle.domain.events.service import ParticipationService
from huddle.settings import settings


def not_event_member(event_id: str) -> ForbiddenError:
	return ForbiddenError(f"Not a member of event {event_id}", code="not_event_member")


class ChatService:
	def __init__(
		self,
		repository: MessageRepository,
		participation: ParticipationService,
		aggregator: ChatAggregator,
		receipts: ReadReceiptTracker,
	) -> None:
		self._repo = repository
		self._participation = participation
		self._aggregator = aggregator
		self._receipts = receipts

	async def ensure_member(self, event_id: str, user_id: str) -> None:
		"""Raise NotFound for an unknown event and Forbidden for non-members."""
		if not await self._participation.is_member(event_id, user_id):
			raise not_event_member(event_id)

	async def one_to_one_history(self, user_id: str, peer_id: str) -> List[Message]:
		return await self._repo.list_one_to_one(user_id, peer_id, settings.history_page_size)

	async def group_history(self, user_id: str, event_id: str) -> List[Message]:
		await self.ensure_member(event_id, user_id)
		return await self._repo.list_group(event_id, settings.history_page_size)

	async def list_chats(self, user_id: str) -> List[ChatPreview]:
		return await self._aggregator.list_chats(user_id)

	async def mark_read(self, user_id: str, message_ids: List[str]) -> List[str]:
		return await self._receipts.mark_read(message_ids, user_id)

	async def authorize_send(self, user_id: str, request: SendMessageRequest) -> None:
		"""Check the caller may send ``request``; shape validation is left to the router."""
		if request.sender and request.sender != user_id:
			raise ForbiddenError("Sender does not match the authenticated user", code="sender_mismatch")
		if request.chat_type == ChatType.GROUP and request.event_id:
			await self.ensure_member(request.event_id, user_id)
