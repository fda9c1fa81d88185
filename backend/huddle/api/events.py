from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from huddle.api.deps import get_runtime
from huddle.domain.events import schemas
from huddle.infra.auth import AuthenticatedUser, get_current_user
from huddle.live.runtime import LiveRuntime

router = APIRouter(prefix="/events", tags=["events"])


@router.post("", response_model=schemas.EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: schemas.EventCreateRequest,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    event = await runtime.participation.create_event(auth_user.id, payload)
    return await runtime.participation.describe(event)


@router.get("/managed", response_model=List[schemas.EventResponse])
async def list_managed_events(
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    return await runtime.participation.list_managed(auth_user.id)


@router.get("/{event_id}", response_model=schemas.EventResponse)
async def get_event(
    event_id: str,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    event = await runtime.participation.get_event(event_id)
    return await runtime.participation.describe(event)


@router.post("/{event_id}/join", response_model=schemas.EventResponse)
async def join_event(
    event_id: str,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    event = await runtime.participation.join(event_id, auth_user.id)
    return await runtime.participation.describe(event)


@router.post("/{event_id}/leave", response_model=schemas.EventResponse)
async def leave_event(
    event_id: str,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    event = await runtime.participation.leave(event_id, auth_user.id)
    return await runtime.participation.describe(event)


@router.post("/{event_id}/accept-request", response_model=schemas.EventResponse)
async def accept_request(
    event_id: str,
    payload: schemas.ParticipantDecisionRequest,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    event = await runtime.participation.accept(event_id, auth_user.id, payload.user_id)
    return await runtime.participation.describe(event)


@router.post("/{event_id}/reject-request", response_model=schemas.EventResponse)
async def reject_request(
    event_id: str,
    payload: schemas.ParticipantDecisionRequest,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    event = await runtime.participation.reject(event_id, auth_user.id, payload.user_id)
    return await runtime.participation.describe(event)
