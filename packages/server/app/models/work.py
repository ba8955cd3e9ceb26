"""Portfolio work model."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Work(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "works"

    creator_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False, index=True)
    title: str = Field(nullable=False)
    description: Optional[str] = None
    image_url: Optional[str] = None
    tags: Optional[str] = None  # comma separated
    is_public: bool = Field(default=True, nullable=False, index=True)
