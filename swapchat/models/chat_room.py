"""ChatRoom model: one row per counterparty relationship or per swap request."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship

from swapchat.db import Base
from swapchat.models.mixins import TimestampMixin


class ChatRoom(Base, TimestampMixin):
    """
    Two participants and an optional swap request back-reference.

    swap_request_id and pair_key are both UNIQUE (NULLs allowed), which is what
    makes find-or-create converge on a single row under concurrent creators.
    pair_key is only set on rooms created for a direct (user, user) contact.
    """

    __tablename__ = "chat_rooms"

    __table_args__ = (
        Index("ix_chat_rooms_participant_1", "participant_1"),
        Index("ix_chat_rooms_participant_2", "participant_2"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    participant_1 = Column(Uuid, nullable=False)
    participant_2 = Column(Uuid, nullable=False)
    swap_request_id = Column(
        Uuid, ForeignKey("swap_requests.id"), nullable=True, unique=True
    )
    pair_key = Column(String(80), nullable=True, unique=True)

    swap_request = relationship("SwapRequest", back_populates="chat_room")

    @property
    def participants(self) -> frozenset:
        return frozenset((self.participant_1, self.participant_2))
