"""Participation service: serialized event mutations plus notifications."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol

import ulid

from huddle.domain.errors import HuddleError, event_not_found
from huddle.domain.events import outbox, policy
from huddle.domain.events.models import Event, Participation, ParticipationStatus
from huddle.domain.events.repo import EventRepository
from huddle.domain.events.schemas import EventCreateRequest, EventResponse, ParticipationUpdate
from huddle.domain.profiles import ProfileDirectory
from huddle.infra.locks import KeyedLock
from huddle.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class ParticipationNotifier(Protocol):
	async def participation_changed(self, recipient_id: str, update: ParticipationUpdate) -> None:
		...


def _now() -> datetime:
	return datetime.now(timezone.utc)


class ParticipationService:
	"""Runs join, leave, accept and reject one at a time per event.

	The keyed lock covers concurrent callers inside this process; the
	repository's ``mutate`` makes the read-modify-write atomic in storage.
	"""

	def __init__(
		self,
		repository: EventRepository,
		*,
		profiles: Optional[ProfileDirectory] = None,
		notifier: Optional[ParticipationNotifier] = None,
		locks: Optional[KeyedLock] = None,
	) -> None:
		self._repo = repository
		self._profiles = profiles or ProfileDirectory()
		self._notifier = notifier
		self._locks = locks or KeyedLock()

	def set_notifier(self, notifier: Optional[ParticipationNotifier]) -> None:
		self._notifier = notifier

	async def create_event(self, creator_id: str, payload: EventCreateRequest) -> Event:
		event = Event(
			id=str(ulid.new()),
			creator_id=creator_id,
			title=payload.title.strip(),
			capacity=payload.capacity,
			access_mode=payload.access_mode,
			created_at=_now(),
		)
		created = await self._repo.create_event(event)
		logger.info("event_created", extra={"event_id": created.id, "user_id": creator_id})
		return created

	async def get_event(self, event_id: str) -> Event:
		event = await self._repo.get_event(event_id)
		if event is None:
			raise event_not_found(event_id)
		return event

	async def describe(self, event: Event) -> EventResponse:
		profiles = await self._profiles.get_summaries(p.user_id for p in event.participants)
		return EventResponse.from_model(event, profiles=profiles)

	async def list_managed(self, user_id: str) -> List[EventResponse]:
		events = await self._repo.list_by_creator(user_id)
		profiles = await self._profiles.get_summaries(
			p.user_id for event in events for p in event.participants
		)
		return [EventResponse.from_model(event, profiles=profiles) for event in events]

	async def is_member(self, event_id: str, user_id: str) -> bool:
		event = await self.get_event(event_id)
		return event.is_member(user_id)

	async def member_event_ids(self, user_id: str) -> List[str]:
		return await self._repo.member_event_ids(user_id)

	async def join(self, event_id: str, user_id: str) -> Event:
		event = await self._transition(
			"join",
			event_id,
			lambda current: policy.join(current, user_id, now=_now()),
		)
		status = event.participation_for(user_id).status  # type: ignore[union-attr]
		await self._publish("participant_joined", event, target_id=user_id, status=status, recipient_id=event.creator_id)
		return event

	async def leave(self, event_id: str, user_id: str) -> Event:
		previous: Optional[Participation] = None

		def _leave(current: Event) -> Event:
			nonlocal previous
			previous = current.participation_for(user_id)
			return policy.leave(current, user_id)

		event = await self._transition("leave", event_id, _leave)
		if previous is not None:
			await self._publish("participant_left", event, target_id=user_id, status=None, recipient_id=event.creator_id)
		return event

	async def accept(self, event_id: str, acting_user_id: str, target_user_id: str) -> Event:
		event = await self._transition(
			"accept",
			event_id,
			lambda current: policy.accept(current, acting_user_id, target_user_id, now=_now()),
		)
		await self._publish(
			"participant_accepted",
			event,
			target_id=target_user_id,
			status=ParticipationStatus.APPROVED,
			recipient_id=target_user_id,
			actor_id=acting_user_id,
		)
		return event

	async def reject(self, event_id: str, acting_user_id: str, target_user_id: str) -> Event:
		event = await self._transition(
			"reject",
			event_id,
			lambda current: policy.reject(current, acting_user_id, target_user_id, now=_now()),
		)
		await self._publish(
			"participant_rejected",
			event,
			target_id=target_user_id,
			status=ParticipationStatus.REJECTED,
			recipient_id=target_user_id,
			actor_id=acting_user_id,
		)
		return event

	async def _transition(self, operation: str, event_id: str, mutation: Callable[[Event], Event]) -> Event:
		async with self._locks.hold(event_id):
			try:
				event = await self._repo.mutate(event_id, mutation)
			except HuddleError as exc:
				obs_metrics.participation(operation, exc.code)
				raise
		obs_metrics.participation(operation, "ok")
		return event

	async def _publish(
		self,
		name: str,
		event: Event,
		*,
		target_id: str,
		status: Optional[ParticipationStatus],
		recipient_id: str,
		actor_id: Optional[str] = None,
	) -> None:
		logger.info(name, extra={"event_id": event.id, "user_id": target_id})
		await outbox.append_participation_event(
			name,
			event.id,
			user_id=target_id,
			status=status.value if status else None,
			actor_id=actor_id,
		)
		if self._notifier is None:
			return
		update = ParticipationUpdate(event_id=event.id, user_id=target_id, status=status)
		await self._notifier.participation_changed(recipient_id, update)
