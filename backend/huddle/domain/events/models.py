"""Domain models for events and their participant lists."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional


class AccessMode(str, Enum):
	OPEN = "open"
	VERIFICATION_REQUIRED = "verification_required"


class ParticipationStatus(str, Enum):
	PENDING = "pending"
	APPROVED = "approved"
	REJECTED = "rejected"


@dataclass(slots=True, frozen=True)
class Participation:
	"""One user's membership record against an event."""

	user_id: str
	status: ParticipationStatus
	joined_at: datetime
	updated_at: datetime

	def with_status(self, status: ParticipationStatus, at: datetime) -> "Participation":
		return replace(self, status=status, updated_at=at)


@dataclass(slots=True, frozen=True)
class Event:
	id: str
	creator_id: str
	title: str
	capacity: int
	access_mode: AccessMode
	created_at: datetime
	participants: tuple[Participation, ...] = field(default_factory=tuple)

	def participation_for(self, user_id: str) -> Optional[Participation]:
		for participation in self.participants:
			if participation.user_id == user_id:
				return participation
		return None

	def count(self, status: ParticipationStatus) -> int:
		return sum(1 for participation in self.participants if participation.status == status)

	def is_member(self, user_id: str) -> bool:
		"""Creator or approved participant: the audience of the event's group chat."""
		if user_id == self.creator_id:
			return True
		participation = self.participation_for(user_id)
		return participation is not None and participation.status == ParticipationStatus.APPROVED

	def with_participants(self, participants: List[Participation]) -> "Event":
		return replace(self, participants=tuple(participants))
