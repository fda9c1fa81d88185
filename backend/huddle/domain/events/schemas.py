"""Pydantic schemas for the events API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from huddle.domain.events.models import AccessMode, Event, Participation, ParticipationStatus
from huddle.domain.profiles import ProfileSummary
from huddle.domain.wire import CamelModel


class EventCreateRequest(CamelModel):
	title: str = Field(..., min_length=1, max_length=200)
	capacity: int = Field(..., ge=1, le=10_000)
	access_mode: AccessMode = AccessMode.OPEN


class ParticipantDecisionRequest(CamelModel):
	user_id: str = Field(..., min_length=1)


class ParticipantProfile(CamelModel):
	display_name: str
	avatar_url: Optional[str] = None

	@classmethod
	def from_summary(cls, summary: ProfileSummary) -> "ParticipantProfile":
		return cls(display_name=summary.display_name, avatar_url=summary.avatar_url)


class ParticipantResponse(CamelModel):
	user_id: str
	status: ParticipationStatus
	joined_at: datetime
	updated_at: datetime
	profile: Optional[ParticipantProfile] = None

	@classmethod
	def from_model(
		cls,
		participation: Participation,
		*,
		profile: ProfileSummary | None = None,
	) -> "ParticipantResponse":
		return cls(
			user_id=participation.user_id,
			status=participation.status,
			joined_at=participation.joined_at,
			updated_at=participation.updated_at,
			profile=ParticipantProfile.from_summary(profile) if profile else None,
		)


class EventResponse(CamelModel):
	id: str
	creator_id: str
	title: str
	capacity: int
	access_mode: AccessMode
	created_at: datetime
	approved_count: int
	pending_count: int
	participants: List[ParticipantResponse]

	@classmethod
	def from_model(
		cls,
		event: Event,
		*,
		profiles: dict[str, ProfileSummary] | None = None,
	) -> "EventResponse":
		profiles = profiles or {}
		return cls(
			id=event.id,
			creator_id=event.creator_id,
			title=event.title,
			capacity=event.capacity,
			access_mode=event.access_mode,
			created_at=event.created_at,
			approved_count=event.count(ParticipationStatus.APPROVED),
			pending_count=event.count(ParticipationStatus.PENDING),
			participants=[
				ParticipantResponse.from_model(p, profile=profiles.get(p.user_id))
				for p in event.participants
			],
		)


class ParticipationUpdate(CamelModel):
	"""Live notification body for ``participationUpdated``."""

	event_id: str
	user_id: str
	status: Optional[ParticipationStatus] = None
