"""Pydantic schemas for SwapRequest."""

from __future__ import annotations

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from swapchat.schemas.common import UtcDatetime


class SwapRequestStatus(str, Enum):
    """Lifecycle of a swap request. Accepted and rejected are terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# Only pending -> accepted and pending -> rejected are legal.
ALLOWED_TRANSITIONS: dict[SwapRequestStatus, frozenset[SwapRequestStatus]] = {
    SwapRequestStatus.PENDING: frozenset(
        {SwapRequestStatus.ACCEPTED, SwapRequestStatus.REJECTED}
    ),
    SwapRequestStatus.ACCEPTED: frozenset(),
    SwapRequestStatus.REJECTED: frozenset(),
}


class SwapRequestDirection(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class SwapRequestBase(BaseModel):
    offered_item_id: UUID
    requested_item_id: UUID
    message: Optional[str] = Field(default=None, max_length=2000)


class SwapRequestCreate(SwapRequestBase):
    """Schema for creating a swap request."""

    requester_id: UUID
    owner_id: UUID


class SwapRequestBody(SwapRequestBase):
    """API body; requester comes from the authenticated user."""

    owner_id: UUID


class SwapRequestRead(SwapRequestBase):
    id: UUID
    requester_id: UUID
    owner_id: UUID
    status: SwapRequestStatus
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = {"from_attributes": True}
