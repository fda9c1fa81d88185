"""Process-wide collaborators, built once per application."""

from __future__ import annotations

import logging
from typing import Optional

from huddle.domain.chat.aggregator import ChatAggregator
from huddle.domain.chat.receipts import ReadReceiptTracker
from huddle.domain.chat.repo import MessageRepository
from huddle.domain.chat.service import ChatService
from huddle.domain.errors import TransportError
from huddle.domain.events.repo import EventRepository
from huddle.domain.events.service import ParticipationService
from huddle.domain.profiles import ProfileDirectory
from huddle.live.namespace import LiveNamespace
from huddle.live.registry import ConnectionRegistry
from huddle.live.router import MessageRouter

logger = logging.getLogger(__name__)


class LiveRuntime:
	"""Owns the repositories, registry, router and services for one app instance."""

	def __init__(
		self,
		*,
		events: Optional[EventRepository] = None,
		messages: Optional[MessageRepository] = None,
		profiles: Optional[ProfileDirectory] = None,
		registry: Optional[ConnectionRegistry] = None,
	) -> None:
		self.events = events or EventRepository()
		self.messages = messages or MessageRepository()
		self.profiles = profiles or ProfileDirectory()
		self.registry = registry or ConnectionRegistry()
		self.router = MessageRouter(self.messages, self.registry)
		self.participation = ParticipationService(self.events, profiles=self.profiles, notifier=self.router)
		self.receipts = ReadReceiptTracker(self.messages)
		self.aggregator = ChatAggregator(self.messages, self.events, self.profiles)
		self.chat = ChatService(self.messages, self.participation, self.aggregator, self.receipts)
		self.namespace = LiveNamespace(self.registry, self.router, self.chat)

	async def shutdown(self) -> int:
		"""Drop every live session and close its transport; returns how many were closed."""
		sessions = await self.registry.drain()
		closed = 0
		for session in sessions:
			try:
				await session.transport.close()
			except TransportError:
				logger.warning("live_close_failed", exc_info=True, extra={"session_id": session.session_id})
				continue
			closed += 1
		logger.info("live_runtime_shutdown", extra={"sessions": len(sessions), "closed": closed})
		return closed
