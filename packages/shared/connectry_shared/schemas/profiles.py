"""Profile schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import UUID4, BaseModel

from .common import Role


class ProfileSummary(BaseModel):
    """The slice of a profile shown next to requests, works and messages."""
    id: UUID4
    display_name: Optional[str] = None
    role: Optional[Role] = None


class ProfileRead(ProfileSummary):
    bio: Optional[str] = None
    genre: Optional[str] = None
    area: Optional[str] = None
    instagram_url: Optional[str] = None
    created_at: Optional[datetime] = None


class ProfileWork(BaseModel):
    id: UUID4
    title: str
    image_url: Optional[str] = None
    is_public: bool
    created_at: datetime


class ProfileDetail(BaseModel):
    profile: ProfileRead
    works: List[ProfileWork]
    is_me: bool = False


class CurrentUserBadge(BaseModel):
    """Header badge: who is signed in, and how many messages wait for them."""
    id: UUID4
    display_name: Optional[str] = None
    role: Optional[Role] = None
    role_label: str
    initial: str
    unread_count: int = 0


class UnreadCount(BaseModel):
    unread_count: int
