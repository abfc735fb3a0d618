"""Pydantic schemas for ChatRoom."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, model_validator

from swapchat.schemas.common import UtcDatetime


class ChatRoomRead(BaseModel):
    id: UUID
    participant_1: UUID
    participant_2: UUID
    swap_request_id: Optional[UUID] = None
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = {"from_attributes": True}

    def has_participant(self, user_id: UUID) -> bool:
        return user_id in (self.participant_1, self.participant_2)

    def counterparty_of(self, user_id: UUID) -> UUID:
        return self.participant_2 if user_id == self.participant_1 else self.participant_1


class ChatRoomResolve(BaseModel):
    """Resolve a room either for a swap request or for a counterparty."""

    swap_request_id: Optional[UUID] = None
    counterparty_id: Optional[UUID] = None

    @model_validator(mode="after")
    def exactly_one_key(self):
        if (self.swap_request_id is None) == (self.counterparty_id is None):
            raise ValueError("Provide exactly one of swap_request_id or counterparty_id")
        return self
