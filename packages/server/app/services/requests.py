"""
Request lifecycle service: commission requests and their message threads.

Handles:
- Atomic request + initial message creation (``create_request_with_message``)
- Status transitions (creator only, forward only)
- Append-only, oldest-first message threads for the two participants
- Unread counts for the header badge
"""

from __future__ import annotations

import uuid
from typing import Optional, Sequence

import structlog

from app.core.auth import CurrentUser
from app.core.backend import BackendClient, procedure
from app.core.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from app.models.message import Message
from app.models.profile import Profile
from app.models.request import CommissionRequest
from app.models.work import Work
from connectry_shared.schemas.common import (
    OPEN_THREAD_STATUSES,
    REQUEST_TRANSITIONS,
    STATUS_LABELS,
    RequestStatus,
    Role,
)
from connectry_shared.schemas.profiles import ProfileSummary
from connectry_shared.schemas.requests import (
    MessageRead,
    RequestCreate,
    RequestDetail,
    RequestFormContext,
    RequestListItem,
    RequestRead,
    TransitionResult,
    WorkSummary,
)

log = structlog.get_logger()

TRANSITION_NOTICES = {
    RequestStatus.ACCEPTED: "You accepted this request. Use the messages to agree on the details.",
    RequestStatus.REJECTED: "You declined this request.",
    RequestStatus.CLOSED: "This request is now closed.",
}

MISSING_INITIAL_MESSAGE = (
    "The initial message for this request could not be found. "
    "The request details above are still valid."
)


# ---------------------------------------------------------------------------
# Lifecycle rules
# ---------------------------------------------------------------------------


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in REQUEST_TRANSITIONS.get(current, set())


def available_transitions(status: RequestStatus, is_creator: bool) -> list[RequestStatus]:
    """Transitions to offer the viewer. Only the creator ever gets any."""
    if not is_creator:
        return []
    order = list(RequestStatus)
    return sorted(REQUEST_TRANSITIONS.get(status, set()), key=order.index)


def thread_is_open(status: RequestStatus) -> bool:
    return status in OPEN_THREAD_STATUSES


def compose_message(
    message: str, preferred_timing: Optional[str] = None, budget: Optional[str] = None
) -> str:
    """Append the optional timing and budget fields to the request text."""
    parts = [message]
    if preferred_timing:
        parts.append(f"[Preferred timing]\n{preferred_timing}")
    if budget:
        parts.append(f"[Budget]\n{budget}")
    return "\n\n".join(parts)


def order_thread(messages: Sequence[Message]) -> list[Message]:
    """Oldest first. Stable, so rows with equal timestamps keep backend order."""
    return sorted(messages, key=lambda m: m.created_at)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def to_request_read(req: CommissionRequest) -> RequestRead:
    status = RequestStatus(req.status)
    return RequestRead(
        id=req.id,
        creator_id=req.creator_id,
        client_id=req.client_id,
        work_id=req.work_id,
        title=req.title,
        message=req.message,
        status=status,
        status_label=STATUS_LABELS[status],
        created_at=req.created_at,
        updated_at=req.updated_at,
    )


def to_message_read(msg: Message) -> MessageRead:
    return MessageRead(
        id=msg.id,
        request_id=msg.request_id,
        sender_id=msg.sender_id,
        body=msg.body,
        is_read=msg.is_read,
        created_at=msg.created_at,
    )


def _summary(profile: Optional[Profile]) -> Optional[ProfileSummary]:
    if profile is None:
        return None
    return ProfileSummary(id=profile.id, display_name=profile.display_name, role=profile.role)


async def get_request_or_404(
    backend: BackendClient, request_id: uuid.UUID, *, fresh: bool = False
) -> CommissionRequest:
    req = await backend.select_one("requests", {"id": request_id}, fresh=fresh)
    if not req:
        raise NotFound("This request could not be found. It may have been deleted.")
    return req


def participant_flags(req: CommissionRequest, user_id: Optional[uuid.UUID]) -> tuple[bool, bool]:
    """(is_creator, is_client) for the given viewer."""
    if user_id is None:
        return False, False
    return user_id == req.creator_id, user_id == req.client_id


async def get_participant_request(
    backend: BackendClient, request_id: uuid.UUID, current: CurrentUser
) -> tuple[CommissionRequest, bool, bool]:
    """Load a request the viewer takes part in; outsiders get PermissionDenied."""
    req = await get_request_or_404(backend, request_id)
    is_creator, is_client = participant_flags(req, current.user_id)
    if not (is_creator or is_client):
        log.info(
            "request.access_denied", request_id=str(request_id), user_id=str(current.user_id)
        )
        raise PermissionDenied("You do not have permission to view this request.")
    return req, is_creator, is_client


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


@procedure("create_request_with_message")
async def _create_request_with_message(backend: BackendClient, params: dict) -> dict:
    """Insert a pending request and its first message in one transaction."""
    req = await backend.insert(
        "requests",
        {
            "creator_id": params["creator_id"],
            "client_id": params["client_id"],
            "work_id": params.get("work_id"),
            "title": params["title"],
            "message": params["message"],
            "status": RequestStatus.PENDING.value,
        },
    )
    await backend.insert(
        "messages",
        {
            "request_id": req.id,
            "sender_id": params["client_id"],
            "body": params["message"],
        },
    )
    return {"request_id": req.id}


async def _load_creator(backend: BackendClient, creator_id: uuid.UUID) -> Profile:
    creator = await backend.select_one("profiles", {"id": creator_id})
    if not creator or creator.role != Role.CREATOR.value:
        raise NotFound("Creator not found.")
    return creator


async def _load_requestable_work(
    backend: BackendClient, work_id: Optional[uuid.UUID], creator_id: uuid.UUID
) -> Optional[Work]:
    if work_id is None:
        return None
    work = await backend.select_one("works", {"id": work_id})
    if not work or work.creator_id != creator_id or not work.is_public:
        raise NotFound("Work not found.")
    return work


async def get_request_form_context(
    backend: BackendClient,
    creator_id: Optional[uuid.UUID],
    work_id: Optional[uuid.UUID] = None,
) -> RequestFormContext:
    if creator_id is None:
        raise ValidationFailed(
            "No creator selected. Open the request form from a work or profile page."
        )
    creator = await _load_creator(backend, creator_id)
    work = await _load_requestable_work(backend, work_id, creator_id)
    return RequestFormContext(
        creator=_summary(creator),
        work=WorkSummary(id=work.id, title=work.title) if work else None,
    )


async def create_request(
    backend: BackendClient, payload: RequestCreate, current: CurrentUser
) -> uuid.UUID:
    """Create a request from the client's form. Returns the new request id."""
    if not payload.title or not payload.message:
        raise ValidationFailed(
            "Title and message are required.",
            form=payload.model_dump(mode="json"),
        )
    if payload.creator_id == current.user_id:
        raise Conflict("You cannot send a request to yourself.")

    await _load_creator(backend, payload.creator_id)
    await _load_requestable_work(backend, payload.work_id, payload.creator_id)

    result = await backend.rpc(
        "create_request_with_message",
        {
            "creator_id": payload.creator_id,
            "client_id": current.user_id,
            "work_id": payload.work_id,
            "title": payload.title,
            "message": compose_message(payload.message, payload.preferred_timing, payload.budget),
        },
    )
    request_id = result["request_id"]
    log.info(
        "request.created",
        request_id=str(request_id),
        creator_id=str(payload.creator_id),
        client_id=str(current.user_id),
        work_id=str(payload.work_id) if payload.work_id else None,
    )
    return request_id


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_requests_for_user(
    backend: BackendClient, current: CurrentUser
) -> list[RequestListItem]:
    """The viewer's requests, most recently updated first."""
    column = "creator_id" if current.is_creator else "client_id"
    rows = await backend.select(
        "requests", {column: current.user_id}, order_by="updated_at", descending=True
    )
    if not rows:
        return []

    counterpart_ids = {r.client_id if current.is_creator else r.creator_id for r in rows}
    work_ids = {r.work_id for r in rows if r.work_id}

    profiles = {p.id: p for p in await backend.select("profiles", {"id": list(counterpart_ids)})}
    works = {}
    if work_ids:
        works = {w.id: w for w in await backend.select("works", {"id": list(work_ids)})}

    items = []
    for r in rows:
        status = RequestStatus(r.status)
        counterpart_id = r.client_id if current.is_creator else r.creator_id
        work = works.get(r.work_id) if r.work_id else None
        items.append(
            RequestListItem(
                id=r.id,
                title=r.title,
                status=status,
                status_label=STATUS_LABELS[status],
                counterpart=_summary(profiles.get(counterpart_id)),
                work=WorkSummary(id=work.id, title=work.title) if work else None,
                created_at=r.created_at,
                updated_at=r.updated_at,
            )
        )
    return items


async def get_request_detail(
    backend: BackendClient, request_id: uuid.UUID, current: CurrentUser
) -> RequestDetail:
    req, is_creator, is_client = await get_participant_request(backend, request_id, current)
    status = RequestStatus(req.status)

    profiles = {
        p.id: p
        for p in await backend.select("profiles", {"id": [req.creator_id, req.client_id]})
    }
    work = await backend.select_one("works", {"id": req.work_id}) if req.work_id else None
    messages = order_thread(
        await backend.select("messages", {"request_id": req.id}, order_by="created_at")
    )

    warnings = []
    if not messages:
        warnings.append(MISSING_INITIAL_MESSAGE)

    return RequestDetail(
        request=to_request_read(req),
        creator=_summary(profiles.get(req.creator_id)),
        client=_summary(profiles.get(req.client_id)),
        work=WorkSummary(id=work.id, title=work.title) if work else None,
        messages=[to_message_read(m) for m in messages],
        is_creator=is_creator,
        is_client=is_client,
        available_transitions=available_transitions(status, is_creator),
        can_message=thread_is_open(status),
        warnings=warnings,
    )


async def list_messages(
    backend: BackendClient, request_id: uuid.UUID, current: CurrentUser
) -> list[MessageRead]:
    req, _, _ = await get_participant_request(backend, request_id, current)
    rows = await backend.select("messages", {"request_id": req.id}, order_by="created_at")
    return [to_message_read(m) for m in order_thread(rows)]


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def transition_request(
    backend: BackendClient,
    request_id: uuid.UUID,
    target: RequestStatus,
    current: CurrentUser,
) -> CommissionRequest:
    """Move a request to ``target``. Creator only; forward edges only."""
    req, is_creator, _ = await get_participant_request(backend, request_id, current)
    if not is_creator:
        raise PermissionDenied("Only the creator can change the status of this request.")

    old_status = RequestStatus(req.status)
    if not can_transition(old_status, target):
        raise Conflict(
            f"Cannot change status from '{old_status.value}' to '{target.value}'.",
            from_status=old_status.value,
            to_status=target.value,
        )

    await backend.update("requests", {"status": target.value}, {"id": req.id})
    log.info(
        "request.transitioned",
        request_id=str(req.id),
        from_status=old_status.value,
        to_status=target.value,
        actor_id=str(current.user_id),
    )
    return req


def transition_result(req: CommissionRequest, is_creator: bool) -> TransitionResult:
    status = RequestStatus(req.status)
    return TransitionResult(
        request=to_request_read(req),
        available_transitions=available_transitions(status, is_creator),
        can_message=thread_is_open(status),
        notice=TRANSITION_NOTICES.get(status, STATUS_LABELS[status]),
    )


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


async def append_message(
    backend: BackendClient, request_id: uuid.UUID, body: str, current: CurrentUser
) -> MessageRead:
    """Append a message from the viewer to the thread and return the stored row."""
    req, _, _ = await get_participant_request(backend, request_id, current)
    if not body:
        raise ValidationFailed("Message cannot be empty.", form={"body": body})

    status = RequestStatus(req.status)
    if not thread_is_open(status):
        raise Conflict(
            "Messages cannot be sent on a request that is declined or closed.",
            form={"body": body},
        )

    msg = await backend.insert(
        "messages",
        {"request_id": req.id, "sender_id": current.user_id, "body": body},
    )
    log.info("message.sent", request_id=str(req.id), message_id=str(msg.id),
             sender_id=str(current.user_id))
    return to_message_read(msg)


async def mark_thread_read(
    backend: BackendClient, request_id: uuid.UUID, current: CurrentUser
) -> int:
    """Flag the counterpart's unread messages as read. Returns how many changed."""
    req, is_creator, _ = await get_participant_request(backend, request_id, current)
    counterpart_id = req.client_id if is_creator else req.creator_id
    rows = await backend.update(
        "messages",
        {"is_read": True},
        {"request_id": req.id, "sender_id": counterpart_id, "is_read": False},
    )
    if rows:
        log.info("message.thread_read", request_id=str(req.id), count=len(rows))
    return len(rows)


async def count_unread(backend: BackendClient, user_id: uuid.UUID) -> int:
    """Unread messages addressed to ``user_id`` across all of their requests."""
    as_creator = await backend.select("requests", {"creator_id": user_id}, columns=["id"])
    as_client = await backend.select("requests", {"client_id": user_id}, columns=["id"])
    request_ids = {r["id"] for r in as_creator} | {r["id"] for r in as_client}
    if not request_ids:
        return 0

    unread = await backend.select(
        "messages",
        {"request_id": list(request_ids), "is_read": False},
        columns=["sender_id"],
    )
    return sum(1 for m in unread if m["sender_id"] != user_id)
