"""Pydantic schemas for in-app notifications."""

from __future__ import annotations

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from swapchat.schemas.common import UtcDatetime


class NotificationType(str, Enum):
    SWAP_REQUEST = "swap_request"
    MESSAGE = "message"
    RATING = "rating"
    SYSTEM = "system"


class NotificationRead(BaseModel):
    id: UUID
    user_id: UUID
    title: str
    message: str
    type: NotificationType
    related_id: Optional[UUID] = None
    is_read: bool
    created_at: UtcDatetime

    model_config = {"from_attributes": True}
