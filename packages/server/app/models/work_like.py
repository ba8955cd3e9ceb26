"""Like on a work (join table, one row per user per work)."""

from datetime import datetime, timezone
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


class WorkLike(SQLModel, table=True):
    __tablename__ = "work_likes"

    work_id: uuid.UUID = Field(foreign_key="works.id", primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", primary_key=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
