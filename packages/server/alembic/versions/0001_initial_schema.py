"""Initial schema: users, profiles, works, likes, requests, messages.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 10:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # ------------------------------------------------------------------
    # Identity and profiles
    # ------------------------------------------------------------------
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("bio", sa.String(), nullable=True),
        sa.Column("genre", sa.String(), nullable=True),
        sa.Column("area", sa.String(), nullable=True),
        sa.Column("instagram_url", sa.String(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('creator', 'client')", name="profile_role_valid"),
    )

    # ------------------------------------------------------------------
    # Portfolio
    # ------------------------------------------------------------------
    op.create_table(
        "works",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("creator_id", sa.Uuid(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("tags", sa.String(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_works_id", "works", ["id"])
    op.create_index("ix_works_creator_id", "works", ["creator_id"])
    op.create_index("ix_works_is_public", "works", ["is_public"])

    op.create_table(
        "work_likes",
        sa.Column("work_id", sa.Uuid(), sa.ForeignKey("works.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # ------------------------------------------------------------------
    # Requests and their threads
    # ------------------------------------------------------------------
    op.create_table(
        "requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("creator_id", sa.Uuid(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("client_id", sa.Uuid(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("work_id", sa.Uuid(), sa.ForeignKey("works.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'closed')",
            name="request_status_valid",
        ),
        sa.CheckConstraint("creator_id != client_id", name="request_distinct_parties"),
    )
    op.create_index("ix_requests_id", "requests", ["id"])
    op.create_index("ix_requests_creator_id", "requests", ["creator_id"])
    op.create_index("ix_requests_client_id", "requests", ["client_id"])
    op.create_index("ix_requests_work_id", "requests", ["work_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("request_id", sa.Uuid(), sa.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", sa.Uuid(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("body", sa.String(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_messages_request_id", "messages", ["request_id"])
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])
    op.create_index("ix_messages_created_at", "messages", ["created_at"])

    # Messages are append-only: block edits to anything except the read flag.
    op.execute(
        """
        CREATE OR REPLACE FUNCTION messages_append_only() RETURNS trigger AS $$
        BEGIN
            IF NEW.body IS DISTINCT FROM OLD.body
               OR NEW.sender_id IS DISTINCT FROM OLD.sender_id
               OR NEW.request_id IS DISTINCT FROM OLD.request_id
               OR NEW.created_at IS DISTINCT FROM OLD.created_at THEN
                RAISE EXCEPTION 'messages are append-only';
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        "CREATE TRIGGER messages_append_only BEFORE UPDATE ON messages "
        "FOR EACH ROW EXECUTE FUNCTION messages_append_only()"
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS messages_append_only ON messages")
    op.execute("DROP FUNCTION IF EXISTS messages_append_only()")
    op.drop_table("messages")
    op.drop_table("requests")
    op.drop_table("work_likes")
    op.drop_table("works")
    op.drop_table("profiles")
    op.drop_table("users")
