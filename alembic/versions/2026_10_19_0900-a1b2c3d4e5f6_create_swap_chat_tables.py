"""create swap and chat tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Create swap_items, swap_requests, chat_rooms, messages, user_ratings, profiles, notifications."""
    op.create_table(
        "swap_items",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_swap_items_user_id", "swap_items", ["user_id"])

    op.create_table(
        "swap_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("requester_id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column(
            "offered_item_id",
            sa.Uuid(),
            sa.ForeignKey("swap_items.id"),
            nullable=False,
        ),
        sa.Column(
            "requested_item_id",
            sa.Uuid(),
            sa.ForeignKey("swap_items.id"),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("requester_id <> owner_id", name="ck_swap_requests_not_self"),
    )
    op.create_index(
        "ix_swap_requests_owner_created", "swap_requests", ["owner_id", "created_at"]
    )
    op.create_index(
        "ix_swap_requests_requester_created",
        "swap_requests",
        ["requester_id", "created_at"],
    )

    op.create_table(
        "chat_rooms",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("participant_1", sa.Uuid(), nullable=False),
        sa.Column("participant_2", sa.Uuid(), nullable=False),
        sa.Column(
            "swap_request_id",
            sa.Uuid(),
            sa.ForeignKey("swap_requests.id"),
            nullable=True,
            unique=True,
        ),
        sa.Column("pair_key", sa.String(length=80), nullable=True, unique=True),
        *_timestamps(),
    )
    op.create_index("ix_chat_rooms_participant_1", "chat_rooms", ["participant_1"])
    op.create_index("ix_chat_rooms_participant_2", "chat_rooms", ["participant_2"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "chat_room_id", sa.Uuid(), sa.ForeignKey("chat_rooms.id"), nullable=False
        ),
        sa.Column("sender_id", sa.Uuid(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(length=16), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("client_ref", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "chat_room_id", "sender_id", "client_ref", name="uq_messages_client_ref"
        ),
    )
    op.create_index(
        "ix_messages_room_created", "messages", ["chat_room_id", "created_at", "id"]
    )

    op.create_table(
        "user_ratings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("rater_user_id", sa.Uuid(), nullable=False),
        sa.Column("rated_user_id", sa.Uuid(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column(
            "swap_request_id",
            sa.Uuid(),
            sa.ForeignKey("swap_requests.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_user_ratings_range"),
        sa.CheckConstraint(
            "rater_user_id <> rated_user_id", name="ck_user_ratings_not_self"
        ),
    )
    op.create_index(
        "ix_user_ratings_rated_created", "user_ratings", ["rated_user_id", "created_at"]
    )

    op.create_table(
        "profiles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=256), nullable=True),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("total_swaps", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=256), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("related_id", sa.Uuid(), nullable=True),
        sa.Column(
            "is_read", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_notifications_user_created", "notifications", ["user_id", "created_at"]
    )


def downgrade() -> None:
    """Drop all swap and chat tables."""
    op.drop_index("ix_notifications_user_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_table("profiles")
    op.drop_index("ix_user_ratings_rated_created", table_name="user_ratings")
    op.drop_table("user_ratings")
    op.drop_index("ix_messages_room_created", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_chat_rooms_participant_2", table_name="chat_rooms")
    op.drop_index("ix_chat_rooms_participant_1", table_name="chat_rooms")
    op.drop_table("chat_rooms")
    op.drop_index("ix_swap_requests_requester_created", table_name="swap_requests")
    op.drop_index("ix_swap_requests_owner_created", table_name="swap_requests")
    op.drop_table("swap_requests")
    op.drop_index("ix_swap_items_user_id", table_name="swap_items")
    op.drop_table("swap_items")
