"""Message model: append-only log entries owned by a chat room."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)

from swapchat.db import Base
from swapchat.models.mixins import utcnow


class Message(Base):
    """Immutable once written. status is the sender-side delivery annotation."""

    __tablename__ = "messages"

    __table_args__ = (
        Index("ix_messages_room_created", "chat_room_id", "created_at", "id"),
        UniqueConstraint(
            "chat_room_id", "sender_id", "client_ref", name="uq_messages_client_ref"
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_room_id = Column(Uuid, ForeignKey("chat_rooms.id"), nullable=False)
    sender_id = Column(Uuid, nullable=False)
    content = Column(Text, nullable=False)
    message_type = Column(String(16), nullable=False, default="text")
    image_url = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="sent")
    client_ref = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
