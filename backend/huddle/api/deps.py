"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Request

from huddle.live.runtime import LiveRuntime


def get_runtime(request: Request) -> LiveRuntime:
    return request.app.state.runtime
