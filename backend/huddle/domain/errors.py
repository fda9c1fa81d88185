"""Domain error taxonomy shared by the HTTP API and the live channel."""

from __future__ import annotations


class HuddleError(RuntimeError):
	"""Base domain error carrying a stable code and the HTTP status it maps to."""

	code = "error"
	status_code = 400

	def __init__(self, message: str | None = None, *, code: str | None = None) -> None:
		super().__init__(message or code or self.code)
		if code is not None:
			self.code = code
		self.message = message or self.code


class ValidationError(HuddleError):
	code = "validation_error"
	status_code = 400


class ConflictError(HuddleError):
	code = "conflict"
	status_code = 400


class CapacityExceededError(HuddleError):
	code = "capacity_exceeded"
	status_code = 400

	def __init__(self, capacity: int) -> None:
		super().__init__(f"Event is at full capacity ({capacity})")
		self.capacity = capacity


class ForbiddenError(HuddleError):
	code = "forbidden"
	status_code = 403


class NotFoundError(HuddleError):
	code = "not_found"
	status_code = 404


class RateLimitedError(HuddleError):
	code = "rate_limited"
	status_code = 429


class TransportError(HuddleError):
	"""A live push failed. Logged by the router, never surfaced to callers."""

	code = "transport_error"
	status_code = 502


class PersistenceError(HuddleError):
	code = "persistence_unavailable"
	status_code = 500


def event_not_found(event_id: str) -> NotFoundError:
	return NotFoundError(f"Event {event_id} not found", code="event_not_found")
