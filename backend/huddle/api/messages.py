from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from huddle.api.deps import get_runtime
from huddle.domain.chat import schemas
from huddle.infra.auth import AuthenticatedUser, get_current_user
from huddle.live.runtime import LiveRuntime

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=schemas.MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    payload: schemas.SendMessageRequest,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    await runtime.chat.authorize_send(auth_user.id, payload)
    message = await runtime.router.send_message(auth_user.id, payload)
    return schemas.MessageResponse.from_model(message)


@router.get("/one-to-one/{recipient_id}", response_model=List[schemas.MessageResponse])
async def one_to_one_history(
    recipient_id: str,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    messages = await runtime.chat.one_to_one_history(auth_user.id, recipient_id)
    return [schemas.MessageResponse.from_model(m) for m in messages]


@router.get("/group/{event_id}", response_model=List[schemas.MessageResponse])
async def group_history(
    event_id: str,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    messages = await runtime.chat.group_history(auth_user.id, event_id)
    return [schemas.MessageResponse.from_model(m) for m in messages]


@router.post("/read", response_model=schemas.MessagesReadResponse)
async def mark_read(
    payload: schemas.MarkReadRequest,
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    # The caller is always the reader; a userId in the body is ignored.
    marked = await runtime.chat.mark_read(auth_user.id, payload.message_ids)
    return schemas.MessagesReadResponse(message_ids=marked)


@router.get("/chats", response_model=List[schemas.ChatPreviewResponse])
async def list_chats(
    auth_user: AuthenticatedUser = Depends(get_current_user),
    runtime: LiveRuntime = Depends(get_runtime),
):
    previews = await runtime.chat.list_chats(auth_user.id)
    return [schemas.ChatPreviewResponse.from_model(p) for p in previews]
