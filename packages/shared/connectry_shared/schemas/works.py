"""Portfolio work and like schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import UUID4, BaseModel, Field

from .profiles import ProfileRead


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class WorkUpdate(BaseModel):
    """Partial update of a work's text fields and visibility."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    tags: Optional[str] = Field(default=None, max_length=500)
    is_public: Optional[bool] = None


class WorkVisibility(BaseModel):
    is_public: bool


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class WorkRead(BaseModel):
    id: UUID4
    creator_id: UUID4
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    tags: List[str] = []
    is_public: bool
    created_at: datetime
    updated_at: datetime


class WorkCard(WorkRead):
    """A work as it appears in the public gallery."""
    creator_name: Optional[str] = None
    creator_genre: Optional[str] = None
    creator_area: Optional[str] = None
    like_count: int = 0


class WorkList(BaseModel):
    data: List[WorkCard]


class LikeState(BaseModel):
    work_id: UUID4
    like_count: int
    liked: bool


class WorkDetail(BaseModel):
    work: WorkRead
    creator: Optional[ProfileRead] = None
    like_count: int = 0
    liked: bool = False
    is_owner: bool = False
