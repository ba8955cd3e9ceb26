"""Public profile, one per auth identity."""

from typing import Optional
import uuid

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class Profile(TimestampMixin, SQLModel, table=True):
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("role IN ('creator', 'client')", name="profile_role_valid"),
    )

    id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    role: str = Field(nullable=False)  # creator | client
    display_name: Optional[str] = None
    bio: Optional[str] = None
    genre: Optional[str] = None
    area: Optional[str] = None
    instagram_url: Optional[str] = None
