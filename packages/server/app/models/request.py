"""Commission request model."""

from typing import Optional
import uuid

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class CommissionRequest(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "requests"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'closed')",
            name="request_status_valid",
        ),
        CheckConstraint("creator_id != client_id", name="request_distinct_parties"),
    )

    creator_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False, index=True)
    client_id: uuid.UUID = Field(foreign_key="profiles.id", nullable=False, index=True)
    work_id: Optional[uuid.UUID] = Field(default=None, foreign_key="works.id", index=True)
    title: str = Field(nullable=False)
    message: str = Field(nullable=False)  # snapshot of the initial message
    status: str = Field(nullable=False, default="pending")  # pending | accepted | rejected | closed
