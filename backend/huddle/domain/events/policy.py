"""Participation state machine.

Each transition is a pure function from an ``Event`` to the next ``Event``.
Callers are responsible for running read, transition and write for one event
without interleaving (see ``ParticipationService``).

Per user and event::

	(none) -> pending -> approved | rejected     verification required
	(none) -> approved                           open
	approved <-> rejected                        repeated creator decisions
	any -> (none)                                leave
"""

from __future__ import annotations

from datetime import datetime

from huddle.domain.errors import CapacityExceededError, ConflictError, ForbiddenError, NotFoundError
from huddle.domain.events.models import AccessMode, Event, Participation, ParticipationStatus


def ensure_can_join(event: Event, user_id: str) -> None:
	if user_id == event.creator_id:
		raise ConflictError("Event creator cannot join their own event", code="creator_cannot_join")
	if event.participation_for(user_id) is not None:
		raise ConflictError("Already requested to join this event", code="already_participating")
	approved = event.count(ParticipationStatus.APPROVED)
	if event.access_mode == AccessMode.OPEN:
		if approved >= event.capacity:
			raise CapacityExceededError(event.capacity)
		return
	# Pending requests hold a seat at join time only; they are never evicted later.
	pending = event.count(ParticipationStatus.PENDING)
	if approved + pending >= event.capacity:
		raise CapacityExceededError(event.capacity)


def join(event: Event, user_id: str, *, now: datetime) -> Event:
	ensure_can_join(event, user_id)
	status = (
		ParticipationStatus.APPROVED
		if event.access_mode == AccessMode.OPEN
		else ParticipationStatus.PENDING
	)
	participation = Participation(user_id=user_id, status=status, joined_at=now, updated_at=now)
	return event.with_participants([*event.participants, participation])


def leave(event: Event, user_id: str) -> Event:
	if event.participation_for(user_id) is None:
		return event
	return event.with_participants([p for p in event.participants if p.user_id != user_id])


def ensure_creator(event: Event, acting_user_id: str) -> None:
	if acting_user_id != event.creator_id:
		raise ForbiddenError("Only the event creator can review join requests")


def decide(
	event: Event,
	acting_user_id: str,
	target_user_id: str,
	status: ParticipationStatus,
	*,
	now: datetime,
) -> Event:
	"""Set a participant's status. Any prior status may be overwritten.

	Approving someone who is not yet approved still respects the approved
	headcount limit.
	"""
	ensure_creator(event, acting_user_id)
	current = event.participation_for(target_user_id)
	if current is None:
		raise NotFoundError(
			f"User {target_user_id} has not requested to join this event",
			code="participant_not_found",
		)
	if (
		status == ParticipationStatus.APPROVED
		and current.status != ParticipationStatus.APPROVED
		and event.count(ParticipationStatus.APPROVED) >= event.capacity
	):
		raise CapacityExceededError(event.capacity)
	updated = current.with_status(status, now)
	return event.with_participants(
		[updated if p.user_id == target_user_id else p for p in event.participants]
	)


def accept(event: Event, acting_user_id: str, target_user_id: str, *, now: datetime) -> Event:
	return decide(event, acting_user_id, target_user_id, ParticipationStatus.APPROVED, now=now)


def reject(event: Event, acting_user_id: str, target_user_id: str, *, now: datetime) -> Event:
	return decide(event, acting_user_id, target_user_id, ParticipationStatus.REJECTED, now=now)
