"""Typed envelopes for the live channel.

Every frame in either direction is sent under the Socket.IO event name
``message`` with a ``{"type": ..., "payload": {...}}`` body.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from huddle.domain.errors import ValidationError
from huddle.domain.wire import CamelModel

LIVE_EVENT = "message"
LIVE_NAMESPACE = "/live"


class ClientKind(str, Enum):
	JOIN = "join"
	JOIN_EVENT = "joinEvent"
	LEAVE_EVENT = "leaveEvent"
	SEND_MESSAGE = "sendMessage"
	MARK_AS_READ = "markAsRead"


class ServerKind(str, Enum):
	NEW_MESSAGE = "newMessage"
	MESSAGE_SENT = "messageSent"
	MESSAGES_READ = "messagesRead"
	ERROR = "error"
	PARTICIPATION_UPDATED = "participationUpdated"


class ClientEnvelope(BaseModel):
	type: ClientKind
	payload: Dict[str, Any] = Field(default_factory=dict)


class JoinPayload(CamelModel):
	user_id: str = Field(..., min_length=1)


class EventRoomPayload(CamelModel):
	event_id: str = Field(..., min_length=1)


def server_envelope(kind: ServerKind, payload: Dict[str, Any]) -> Dict[str, Any]:
	return {"type": kind.value, "payload": payload}


def error_envelope(message: str) -> Dict[str, Any]:
	return server_envelope(ServerKind.ERROR, {"message": message})


def parse_client_envelope(data: Any) -> ClientEnvelope:
	try:
		return ClientEnvelope.model_validate(data)
	except PydanticValidationError:
		raise ValidationError("Invalid message envelope", code="invalid_envelope") from None


def parse_payload(model: type[CamelModel], payload: Dict[str, Any]) -> Any:
	try:
		return model.model_validate(payload)
	except PydanticValidationError as exc:
		fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in exc.errors())
		raise ValidationError(f"Invalid payload: {fields}", code="invalid_payload") from None
