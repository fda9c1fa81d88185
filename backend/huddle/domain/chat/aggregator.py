"""Per-user chat previews rebuilt from the persisted message log."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Tuple

from huddle.domain.chat.models import ChatPreview, ChatType, Message
from huddle.domain.chat.repo import MessageRepository
from huddle.domain.events.repo import EventRepository
from huddle.domain.profiles import ProfileDirectory

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _group_key(message: Message, user_id: str) -> Tuple[ChatType, str] | None:
	if message.chat_type == ChatType.GROUP:
		return (ChatType.GROUP, message.event_id) if message.event_id else None
	counterpart = message.counterpart(user_id)
	if counterpart is None or counterpart == user_id:
		return None
	return (ChatType.ONE_TO_ONE, counterpart)


def summarise(
	user_id: str,
	messages: Iterable[Message],
	*,
	display_names: Mapping[str, str],
	event_titles: Mapping[str, str],
) -> List[ChatPreview]:
	"""Group messages into conversations and build one preview per conversation.

	Group chats whose event is missing from ``event_titles`` are dropped.
	Previews come back newest conversation first.
	"""
	previews: Dict[Tuple[ChatType, str], ChatPreview] = {}
	for message in messages:
		key = _group_key(message, user_id)
		if key is None:
			continue
		chat_type, chat_id = key
		preview = previews.get(key)
		if preview is None:
			if chat_type == ChatType.GROUP:
				if chat_id not in event_titles:
					continue
				name = event_titles[chat_id]
			else:
				name = display_names.get(chat_id) or chat_id
			preview = ChatPreview(chat_id=chat_id, chat_type=chat_type, display_name=name, last_message=None)
			previews[key] = preview
		if preview.last_message is None or message.created_at >= preview.last_message.created_at:
			preview.last_message = message
		if message.sender_id != user_id and not message.is_read_by(user_id):
			preview.unread_count += 1
	return sorted(
		previews.values(),
		key=lambda p: p.last_message.created_at if p.last_message else _OLDEST,
		reverse=True,
	)


class ChatAggregator:
	def __init__(
		self,
		messages: MessageRepository,
		events: EventRepository,
		profiles: ProfileDirectory,
	) -> None:
		self._messages = messages
		self._events = events
		self._profiles = profiles

	async def list_chats(self, user_id: str) -> List[ChatPreview]:
		event_ids = await self._events.member_event_ids(user_id)
		messages = await self._messages.list_for_user(user_id, event_ids)
		events = await self._events.list_by_ids(event_ids)
		counterparts = {
			m.counterpart(user_id) for m in messages if m.chat_type == ChatType.ONE_TO_ONE
		}
		summaries = await self._profiles.get_summaries(uid for uid in counterparts if uid)
		return summarise(
			user_id,
			messages,
			display_names={uid: summary.display_name for uid, summary in summaries.items()},
			event_titles={event.id: event.title for event in events},
		)
