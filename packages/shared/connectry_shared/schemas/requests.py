"""Commission request and message-thread schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import UUID4, BaseModel, Field, field_validator

from .common import RequestStatus
from .profiles import ProfileSummary


def _strip(value: Optional[str]) -> Optional[str]:
    return value.strip() if isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RequestCreate(BaseModel):
    """Form payload for a new commission request."""
    creator_id: UUID4
    work_id: Optional[UUID4] = None
    title: str = Field(max_length=200)
    message: str = Field(max_length=5000)
    preferred_timing: Optional[str] = Field(default=None, max_length=500)
    budget: Optional[str] = Field(default=None, max_length=200)

    @field_validator("title", "message", "preferred_timing", "budget", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class RequestTransition(BaseModel):
    to_status: RequestStatus


class MessageCreate(BaseModel):
    body: str = Field(max_length=5000)

    @field_validator("body", mode="before")
    @classmethod
    def strip_body(cls, value):
        return _strip(value)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class RequestRead(BaseModel):
    id: UUID4
    creator_id: UUID4
    client_id: UUID4
    work_id: Optional[UUID4] = None
    title: str
    message: str
    status: RequestStatus
    status_label: str
    created_at: datetime
    updated_at: datetime


class MessageRead(BaseModel):
    id: UUID4
    request_id: UUID4
    sender_id: UUID4
    body: str
    is_read: bool = False
    created_at: datetime


class WorkSummary(BaseModel):
    id: UUID4
    title: str


class RequestCreated(BaseModel):
    request_id: UUID4


class RequestFormContext(BaseModel):
    """What the request form shows before the client types anything."""
    creator: ProfileSummary
    work: Optional[WorkSummary] = None


class RequestListItem(BaseModel):
    id: UUID4
    title: str
    status: RequestStatus
    status_label: str
    counterpart: Optional[ProfileSummary] = None
    work: Optional[WorkSummary] = None
    created_at: datetime
    updated_at: datetime


class RequestList(BaseModel):
    data: List[RequestListItem]


class RequestDetail(BaseModel):
    request: RequestRead
    creator: Optional[ProfileSummary] = None
    client: Optional[ProfileSummary] = None
    work: Optional[WorkSummary] = None
    messages: List[MessageRead]
    is_creator: bool
    is_client: bool
    available_transitions: List[RequestStatus]
    can_message: bool
    warnings: List[str] = []


class TransitionResult(BaseModel):
    request: RequestRead
    available_transitions: List[RequestStatus]
    can_message: bool
    notice: str


class MessageList(BaseModel):
    data: List[MessageRead]
