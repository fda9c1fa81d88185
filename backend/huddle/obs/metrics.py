"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"huddle_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"huddle_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"huddle_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"huddle_socketio_events_total",
	"Socket.IO envelopes handled or emitted per namespace",
	["namespace", "event"],
)

LIVE_SESSIONS = Gauge(
	"huddle_live_sessions",
	"Sessions currently held by the connection registry",
)

CHAT_SEND = Counter(
	"huddle_chat_messages_sent_total",
	"Chat messages persisted",
	["chat_type"],
)

LIVE_DELIVERIES = Counter(
	"huddle_live_deliveries_total",
	"Envelopes pushed to live sessions",
	["kind", "result"],
)

CHAT_READ_UPDATES = Counter(
	"huddle_chat_read_receipts_total",
	"Read receipts appended",
)

PARTICIPATION_TRANSITIONS = Counter(
	"huddle_participation_transitions_total",
	"Participation state machine outcomes",
	["operation", "result"],
)

REDIS_UP = Gauge("huddle_redis_up", "Redis readiness (1 up, 0 down)")
POSTGRES_UP = Gauge("huddle_postgres_up", "Postgres readiness (1 up, 0 down)")


def observe_request(route: str, method: str, status_code: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status_code)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def set_live_sessions(count: int) -> None:
	LIVE_SESSIONS.set(count)


def inc_chat_send(chat_type: str) -> None:
	CHAT_SEND.labels(chat_type=chat_type).inc()


def live_delivery(kind: str, *, ok: bool) -> None:
	LIVE_DELIVERIES.labels(kind=kind, result="ok" if ok else "failed").inc()


def inc_chat_read(count: int = 1) -> None:
	if count > 0:
		CHAT_READ_UPDATES.inc(count)


def participation(operation: str, result: str) -> None:
	PARTICIPATION_TRANSITIONS.labels(operation=operation, result=result).inc()


def mark_redis(ok: bool) -> None:
	REDIS_UP.set(1 if ok else 0)


def mark_postgres(ok: bool) -> None:
	POSTGRES_UP.set(1 if ok else 0)
