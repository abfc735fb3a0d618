"""Pydantic schemas for chat messages."""

from __future__ import annotations

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from swapchat.schemas.common import UtcDatetime


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    SYSTEM = "system"


class MessageStatus(str, Enum):
    """Viewer-local delivery annotation; advisory only."""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


IMAGE_PLACEHOLDER_CONTENT = "Image"


class MessageCreate(BaseModel):
    """Schema for appending a message (sender comes from the caller)."""

    content: str = ""
    message_type: MessageType = MessageType.TEXT
    image_url: Optional[str] = None
    client_ref: Optional[str] = Field(default=None, max_length=64)


class MessageRead(BaseModel):
    """A persisted message as seen by a viewer."""

    id: UUID
    chat_room_id: UUID
    sender_id: UUID
    content: str
    message_type: MessageType = MessageType.TEXT
    image_url: Optional[str] = None
    status: MessageStatus = MessageStatus.SENT
    client_ref: Optional[str] = None
    created_at: UtcDatetime

    model_config = {"from_attributes": True}

    @property
    def sort_key(self) -> tuple:
        return (self.created_at, str(self.id))
