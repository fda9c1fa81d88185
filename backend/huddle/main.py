"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from huddle.api import events, health, messages
from huddle.api.errors import install_error_handlers
from huddle.api.middleware_request_id import RequestIdMiddleware
from huddle.infra import postgres
from huddle.live.runtime import LiveRuntime
from huddle.obs import init as obs_init
from huddle.settings import settings

logger = logging.getLogger(__name__)

_DEV_ORIGINS = [
	"http://localhost:3000",
	"http://127.0.0.1:3000",
	"http://localhost:5173",
	"http://127.0.0.1:5173",
]


def _allowed_origins() -> List[str]:
	allow_origins = list(getattr(settings, "cors_allow_origins", []))
	if not allow_origins:
		allow_origins = list(_DEV_ORIGINS) if settings.is_dev() else []
	# Starlette disallows wildcard '*' with allow_credentials=True.
	if "*" in allow_origins:
		allow_origins = list(_DEV_ORIGINS) if settings.is_dev() else [o for o in allow_origins if o != "*"]
	return allow_origins


@asynccontextmanager
async def lifespan(app: FastAPI):
	pool = await postgres.init_pool()
	if pool is not None:
		await postgres.ensure_schema()
	logger.info("startup", extra={"storage": "postgres" if pool is not None else "memory"})
	try:
		yield
	finally:
		runtime: LiveRuntime = app.state.runtime
		await runtime.shutdown()
		await postgres.close_pool()


def create_app(runtime: Optional[LiveRuntime] = None) -> FastAPI:
	runtime = runtime or LiveRuntime()
	app = FastAPI(title="Huddle", lifespan=lifespan)
	app.state.runtime = runtime
	install_error_handlers(app)
	obs_init(app)
	app.add_middleware(
		CORSMiddleware,
		allow_origins=_allowed_origins(),
		allow_credentials=True,
		allow_methods=["*"],
		allow_headers=["*"],
	)
	app.add_middleware(RequestIdMiddleware)
	app.include_router(events.router, tags=["events"])
	app.include_router(messages.router, tags=["messages"])
	app.include_router(health.router, tags=["ops"])
	return app


def create_socket_server(runtime: LiveRuntime) -> socketio.AsyncServer:
	sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=_allowed_origins())
	sio.register_namespace(runtime.namespace)
	return sio


app = create_app()
sio = create_socket_server(app.state.runtime)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
