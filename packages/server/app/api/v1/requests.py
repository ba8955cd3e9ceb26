"""
Request endpoints: list, create, detail, status transitions, message thread.

Lifecycle: Pending → Accepted → Closed, or Pending → Declined.
- Only the creator moves a request; every move is re-validated here.
- After any write the request is re-read and the fresh row is returned.
- Messages can be sent while the request is pending or accepted.
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from app.core.auth import CurrentUser, get_current_user, require_client
from app.core.backend import BackendClient, get_backend
from app.services.requests import (
    append_message,
    create_request,
    get_request_detail,
    get_request_form_context,
    get_request_or_404,
    list_messages,
    list_requests_for_user,
    mark_thread_read,
    participant_flags,
    transition_request,
    transition_result,
)
from connectry_shared.schemas.common import RequestStatus
from connectry_shared.schemas.requests import (
    MessageCreate,
    MessageList,
    MessageRead,
    RequestCreate,
    RequestCreated,
    RequestDetail,
    RequestFormContext,
    RequestList,
    RequestTransition,
    TransitionResult,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@router.get("", response_model=RequestList)
async def list_requests_endpoint(
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """The viewer's requests (received as creator, sent as client), newest activity first."""
    return RequestList(data=await list_requests_for_user(backend, current))


@router.get("/new", response_model=RequestFormContext)
async def request_form_endpoint(
    creator_id: Optional[uuid.UUID] = None,
    work_id: Optional[uuid.UUID] = None,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """Context for the new-request form: the target creator and optional work."""
    return await get_request_form_context(backend, creator_id, work_id)


@router.post("", response_model=RequestCreated, status_code=201)
async def create_request_endpoint(
    body: RequestCreate,
    current: CurrentUser = Depends(require_client),
    backend: BackendClient = Depends(get_backend),
):
    """Create a request and its first message atomically."""
    request_id = await create_request(backend, body, current)
    await backend.commit()
    return RequestCreated(request_id=request_id)


@router.get("/{request_id}", response_model=RequestDetail)
async def get_request_endpoint(
    request_id: uuid.UUID,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """Request detail with its full thread. Participants only."""
    return await get_request_detail(backend, request_id, current)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def _transition(
    backend: BackendClient, request_id: uuid.UUID, target: RequestStatus, current: CurrentUser
) -> TransitionResult:
    await transition_request(backend, request_id, target, current)
    await backend.commit()

    req = await get_request_or_404(backend, request_id, fresh=True)
    is_creator, _ = participant_flags(req, current.user_id)
    return transition_result(req, is_creator)


@router.post("/{request_id}/transition", response_model=TransitionResult)
async def transition_request_endpoint(
    request_id: uuid.UUID,
    body: RequestTransition,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """Move a request along its lifecycle."""
    return await _transition(backend, request_id, body.to_status, current)


@router.post("/{request_id}/accept", response_model=TransitionResult)
async def accept_request_endpoint(
    request_id: uuid.UUID,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    return await _transition(backend, request_id, RequestStatus.ACCEPTED, current)


@router.post("/{request_id}/reject", response_model=TransitionResult)
async def reject_request_endpoint(
    request_id: uuid.UUID,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    return await _transition(backend, request_id, RequestStatus.REJECTED, current)


@router.post("/{request_id}/close", response_model=TransitionResult)
async def close_request_endpoint(
    request_id: uuid.UUID,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    return await _transition(backend, request_id, RequestStatus.CLOSED, current)


# ---------------------------------------------------------------------------
# Message thread
# ---------------------------------------------------------------------------


@router.get("/{request_id}/messages", response_model=MessageList)
async def list_messages_endpoint(
    request_id: uuid.UUID,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """The thread, oldest first."""
    return MessageList(data=await list_messages(backend, request_id, current))


@router.post("/{request_id}/messages", response_model=MessageRead, status_code=201)
async def send_message_endpoint(
    request_id: uuid.UUID,
    body: MessageCreate,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """Append a message. Returns the stored row."""
    message = await append_message(backend, request_id, body.body, current)
    await backend.commit()
    return message


@router.post("/{request_id}/read")
async def mark_read_endpoint(
    request_id: uuid.UUID,
    current: CurrentUser = Depends(get_current_user),
    backend: BackendClient = Depends(get_backend),
):
    """Mark the counterpart's messages in this thread as read."""
    updated = await mark_thread_read(backend, request_id, current)
    await backend.commit()
    return {"marked_read": updated}
